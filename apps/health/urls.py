from django.urls import path

from apps.health.views import health_check

urlpatterns = [
    path("", health_check, name="health"),
]
