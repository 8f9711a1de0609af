import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)

CACHE_PROBE_KEY = "health:probe"


def health_check(request):
    """Database reachability decides the status code; a broken cache only degrades."""
    health_status = {"status": "healthy"}

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        health_status["database"] = "connected"
    except DatabaseError as exc:
        logger.error("Health check database probe failed: %s", exc)
        health_status["status"] = "unhealthy"
        health_status["database"] = "unavailable"
        return JsonResponse(health_status, status=503)

    try:
        cache.set(CACHE_PROBE_KEY, "ok", timeout=5)
        health_status["cache"] = "connected" if cache.get(CACHE_PROBE_KEY) == "ok" else "unavailable"
    except Exception:  # backend-specific connection errors
        logger.warning("Health check cache probe failed", exc_info=True)
        health_status["cache"] = "unavailable"
    if health_status["cache"] != "connected":
        health_status["status"] = "degraded"

    return JsonResponse(health_status)
