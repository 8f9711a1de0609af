import logging

import requests
from django.conf import settings

from apps.common.cache import build_cache_key, get_or_fetch
from apps.common.exceptions import UpstreamServiceUnavailable

logger = logging.getLogger(__name__)

WEATHER_CURRENT_FIELDS = "temperature_2m,relative_humidity_2m,wind_speed_10m,weather_code"
WEATHER_HOURLY_FIELDS = "temperature_2m,weather_code"
WEATHER_DAILY_FIELDS = "temperature_2m_max,temperature_2m_min"


def _get_json(url, params, service_name):
    try:
        response = requests.get(url, params=params, timeout=settings.EXTERNAL_API_TIMEOUT_SECONDS)
        response.raise_for_status()
        return response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("%s request failed: %s", service_name, exc)
        raise UpstreamServiceUnavailable(f"{service_name} is unavailable.")


def _round_coordinate(value):
    return f"{float(value):.4f}"


def fetch_prayer_times(latitude, longitude, method=3, school=1):
    key = build_cache_key(
        "prayer-times",
        lat=_round_coordinate(latitude),
        lon=_round_coordinate(longitude),
        method=method,
        school=school,
    )

    def fetch():
        payload = _get_json(
            settings.PRAYER_TIMES_API_URL,
            {
                "lat": latitude,
                "lon": longitude,
                "method": method,
                "school": school,
                "api_key": settings.PRAYER_TIMES_API_KEY,
            },
            "Prayer times service",
        )
        data = payload.get("data") if isinstance(payload, dict) else None
        if not data:
            logger.warning("Prayer times service returned an unexpected payload")
            raise UpstreamServiceUnavailable("Prayer times service returned an invalid response.")
        return {
            "times": data.get("times"),
            "date": data.get("date"),
            "qibla": data.get("qibla"),
            "timezone": data.get("timezone"),
            "prohibited_times": data.get("prohibited_times"),
            "location": {"latitude": float(latitude), "longitude": float(longitude)},
            "settings": {"method": method, "school": school},
        }

    return get_or_fetch(key, settings.PRAYER_TIMES_CACHE_TTL_SECONDS, fetch)


def fetch_fasting_times(latitude, longitude, method=3, school=1):
    key = build_cache_key(
        "fasting-times",
        lat=_round_coordinate(latitude),
        lon=_round_coordinate(longitude),
        method=method,
        school=school,
    )

    def fetch():
        payload = _get_json(
            settings.FASTING_API_URL,
            {
                "lat": latitude,
                "lon": longitude,
                "method": method,
                "school": school,
                "api_key": settings.PRAYER_TIMES_API_KEY,
            },
            "Fasting times service",
        )
        data = payload.get("data") if isinstance(payload, dict) else None
        if not data:
            raise UpstreamServiceUnavailable("Fasting times service returned an invalid response.")
        return data

    return get_or_fetch(key, settings.PRAYER_TIMES_CACHE_TTL_SECONDS, fetch)


def fetch_weather(latitude, longitude):
    key = build_cache_key("weather", lat=_round_coordinate(latitude), lon=_round_coordinate(longitude))

    def fetch():
        return _get_json(
            settings.WEATHER_API_URL,
            {
                "latitude": latitude,
                "longitude": longitude,
                "current": WEATHER_CURRENT_FIELDS,
                "hourly": WEATHER_HOURLY_FIELDS,
                "daily": WEATHER_DAILY_FIELDS,
                "timezone": "auto",
            },
            "Weather service",
        )

    return get_or_fetch(key, settings.WEATHER_CACHE_TTL_SECONDS, fetch)
