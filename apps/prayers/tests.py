from unittest import mock

import requests
from django.core.cache import cache
from rest_framework.test import APITestCase


def upstream_response(payload, status_code=200):
    response = mock.Mock(status_code=status_code)
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    else:
        response.raise_for_status.return_value = None
    return response


PRAYER_PAYLOAD = {
    "code": 200,
    "status": "success",
    "data": {
        "times": {"Fajr": "05:01", "Dhuhr": "12:20", "Asr": "15:40", "Maghrib": "18:10", "Isha": "19:25"},
        "date": {"readable": "19 Oct 2026"},
        "qibla": {"direction": {"degrees": 292.5}},
        "timezone": {"name": "Asia/Kolkata"},
    },
}


class PublicUpstreamApiTests(APITestCase):
    def setUp(self):
        cache.clear()

    @mock.patch("apps.prayers.services.requests.get")
    def test_prayer_times_are_cached(self, mocked_get):
        mocked_get.return_value = upstream_response(PRAYER_PAYLOAD)
        params = {"latitude": "12.9716", "longitude": "77.5946"}

        first = self.client.get("/api/v1/prayers/times/", params)
        second = self.client.get("/api/v1/prayers/times/", params)

        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.data["times"]["Fajr"], "05:01")
        self.assertEqual(first.data["settings"], {"method": 3, "school": 1})
        self.assertEqual(second.data, first.data)
        mocked_get.assert_called_once()
        self.assertEqual(mocked_get.call_args.kwargs["params"]["method"], 3)

    @mock.patch("apps.prayers.services.requests.get")
    def test_upstream_failure_is_service_unavailable(self, mocked_get):
        mocked_get.side_effect = requests.ConnectionError("unreachable")
        response = self.client.get("/api/v1/prayers/times/", {"latitude": "21.4225", "longitude": "39.8262"})
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.data["code"], "upstream_unavailable")

        mocked_get.side_effect = None
        mocked_get.return_value = upstream_response(PRAYER_PAYLOAD)
        retry = self.client.get("/api/v1/prayers/times/", {"latitude": "21.4225", "longitude": "39.8262"})
        self.assertEqual(retry.status_code, 200)

    @mock.patch("apps.prayers.services.requests.get")
    def test_unexpected_payload_is_not_cached(self, mocked_get):
        mocked_get.return_value = upstream_response({"status": "error"})
        response = self.client.get("/api/v1/prayers/fasting/", {"latitude": "24.4672", "longitude": "39.6111"})
        self.assertEqual(response.status_code, 503)
        mocked_get.return_value = upstream_response(
            {"data": {"fasting": [{"date": "2026-10-19", "time": {"sahur": "04:52", "iftar": "18:07"}}]}}
        )
        response = self.client.get("/api/v1/prayers/fasting/", {"latitude": "24.4672", "longitude": "39.6111"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["fasting"][0]["time"]["iftar"], "18:07")

    @mock.patch("apps.prayers.services.requests.get")
    def test_http_error_from_weather_service(self, mocked_get):
        mocked_get.return_value = upstream_response({}, status_code=502)
        response = self.client.get("/api/v1/prayers/weather/", {"latitude": "51.5", "longitude": "-0.12"})
        self.assertEqual(response.status_code, 503)

    @mock.patch("apps.prayers.services.requests.get")
    def test_weather_passes_through_payload(self, mocked_get):
        mocked_get.return_value = upstream_response({"current": {"temperature_2m": 21.4}})
        response = self.client.get("/api/v1/prayers/weather/", {"latitude": "51.5", "longitude": "-0.12"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["current"]["temperature_2m"], 21.4)
        self.assertEqual(mocked_get.call_args.kwargs["params"]["timezone"], "auto")

    @mock.patch("apps.prayers.services.requests.get")
    def test_coordinates_are_validated(self, mocked_get):
        response = self.client.get("/api/v1/prayers/times/", {"latitude": "95", "longitude": "10"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("latitude", response.data["fields"])
        missing = self.client.get("/api/v1/prayers/weather/", {"latitude": "10"})
        self.assertIn("longitude", missing.data["fields"])
        mocked_get.assert_not_called()
