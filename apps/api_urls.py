from django.urls import include, path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

urlpatterns = [
    path("auth/token/", TokenObtainPairView.as_view(), name="token-obtain-pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("", include("apps.donors.urls")),
    path("", include("apps.donations.urls")),
    path("", include("apps.installments.urls")),
    path("", include("apps.reports.urls")),
    path("", include("apps.zakat.urls")),
    path("", include("apps.prayers.urls")),
    path("", include("apps.audit.urls")),
]
