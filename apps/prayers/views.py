from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from apps.prayers import services
from apps.prayers.serializers import LocationQuerySerializer, PrayerTimesQuerySerializer


class PublicUpstreamView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "public_api"


class PrayerTimesView(PublicUpstreamView):
    def get(self, request, *args, **kwargs):
        serializer = PrayerTimesQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        return Response(services.fetch_prayer_times(**serializer.validated_data))


class FastingTimesView(PublicUpstreamView):
    def get(self, request, *args, **kwargs):
        serializer = PrayerTimesQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        return Response(services.fetch_fasting_times(**serializer.validated_data))


class WeatherView(PublicUpstreamView):
    def get(self, request, *args, **kwargs):
        serializer = LocationQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        return Response(services.fetch_weather(**serializer.validated_data))
