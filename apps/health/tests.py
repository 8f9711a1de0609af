from unittest import mock

from django.db import DatabaseError
from rest_framework.test import APITestCase


class HealthCheckTests(APITestCase):
    def test_healthy_without_authentication(self):
        response = self.client.get("/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "healthy", "database": "connected", "cache": "connected"})

    def test_cache_failure_degrades(self):
        with mock.patch("apps.health.views.cache") as broken:
            broken.set.side_effect = ConnectionError("cache down")
            response = self.client.get("/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "degraded")
        self.assertEqual(response.json()["cache"], "unavailable")

    def test_database_failure_is_unhealthy(self):
        with mock.patch("apps.health.views.connection") as broken:
            broken.cursor.side_effect = DatabaseError("no database")
            response = self.client.get("/health/")
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["database"], "unavailable")
