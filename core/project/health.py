import logging

from django.core.cache import cache
from django.db import connection
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

logger = logging.getLogger(__name__)

CACHE_PROBE_KEY = "health_check"


def _check_database():
    connection.ensure_connection()


def _check_cache():
    cache.set(CACHE_PROBE_KEY, "ok", 10)
    if cache.get(CACHE_PROBE_KEY) != "ok":
        raise RuntimeError("cache read/write failed")


class HealthCheckView(APIView):
    """
    Liveness probe for the load balancer.
    Answers 503 when the database or the cache cannot be reached.
    """

    permission_classes = []
    authentication_classes = []
    throttle_classes = []

    checks = {"database": _check_database, "cache": _check_cache}

    def get(self, request):
        results = {}
        healthy = True

        for name, check in self.checks.items():
            try:
                check()
                results[name] = "ok"
            except Exception as exc:
                logger.error("Health check %s failed: %s", name, exc)
                results[name] = f"error: {exc}"
                healthy = False

        return Response(
            {
                "status": "healthy" if healthy else "unhealthy",
                "service": "core",
                "checks": results,
            },
            status=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        )
