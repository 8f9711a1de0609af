from django.urls import path

from apps.prayers.views import FastingTimesView, PrayerTimesView, WeatherView

urlpatterns = [
    path("prayers/times/", PrayerTimesView.as_view(), name="prayer-times"),
    path("prayers/fasting/", FastingTimesView.as_view(), name="fasting-times"),
    path("prayers/weather/", WeatherView.as_view(), name="weather"),
]
