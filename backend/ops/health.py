"""
Health check endpoints for operations monitoring.

Checks:
- Database connectivity (all configured databases)
- Redis connectivity (cache, channel layer and Celery broker)
- Dashboard tick freshness

Endpoints:
- /_health/live    - Kubernetes liveness probe (is the process running?)
- /_health/ready   - Kubernetes readiness probe (can we serve traffic?)
- /_health/full    - Full health report (for debugging/dashboards)
"""
import logging
import time
from typing import Any, Dict

import redis
from django.conf import settings
from django.db import connections
from django.http import JsonResponse
from django.utils import timezone
from django.views import View

logger = logging.getLogger(__name__)


class HealthCheck:
    """Health check implementation."""

    @staticmethod
    def check_database(alias: str = "default") -> Dict[str, Any]:
        """Check database connectivity."""
        start = time.time()
        try:
            conn = connections[alias]
            conn.ensure_connection()
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()
            return {
                "status": "healthy",
                "alias": alias,
                "duration_ms": round((time.time() - start) * 1000, 2),
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "alias": alias,
                "error": str(e),
                "duration_ms": round((time.time() - start) * 1000, 2),
            }

    @staticmethod
    def check_all_databases() -> Dict[str, Any]:
        """Check all configured databases."""
        results = {alias: HealthCheck.check_database(alias) for alias in settings.DATABASES}
        all_healthy = all(r["status"] == "healthy" for r in results.values())
        return {
            "status": "healthy" if all_healthy else "degraded",
            "databases": results,
        }

    @staticmethod
    def check_redis() -> Dict[str, Any]:
        """Check Redis connectivity (if configured)."""
        redis_url = getattr(settings, "REDIS_URL", None)
        if not redis_url or getattr(settings, "TESTING", False):
            return {"status": "skipped", "reason": "Redis not configured"}

        start = time.time()
        try:
            client = redis.from_url(redis_url)
            client.ping()
            return {
                "status": "healthy",
                "duration_ms": round((time.time() - start) * 1000, 2),
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "error": str(e),
                "duration_ms": round((time.time() - start) * 1000, 2),
            }

    @staticmethod
    def check_tick() -> Dict[str, Any]:
        """
        Check that the dashboard tick is running.

        The last completed tick must be younger than three tick intervals.
        """
        from analytics.tasks import get_last_tick_at

        interval = settings.ANALYTICS_TICK_SECONDS
        last_tick = get_last_tick_at()
        if last_tick is None:
            return {"status": "degraded", "last_tick_at": None, "reason": "no tick recorded"}

        age = (timezone.now() - last_tick).total_seconds()
        return {
            "status": "healthy" if age < 3 * interval else "degraded",
            "last_tick_at": last_tick.isoformat(),
            "age_seconds": round(age, 2),
            "interval_seconds": interval,
        }

    @staticmethod
    def get_full_health() -> Dict[str, Any]:
        """Get comprehensive health report."""
        checks = {
            "databases": HealthCheck.check_all_databases(),
            "redis": HealthCheck.check_redis(),
            "tick": HealthCheck.check_tick(),
        }

        statuses = [c.get("status", "unknown") for c in checks.values()]
        if all(s in ("healthy", "skipped") for s in statuses):
            overall = "healthy"
        elif any(s == "unhealthy" for s in statuses):
            overall = "unhealthy"
        else:
            overall = "degraded"

        return {
            "status": overall,
            "checks": checks,
            "version": getattr(settings, "VERSION", "unknown"),
            "environment": "development" if settings.DEBUG else "production",
        }


class LivenessView(View):
    """
    Kubernetes liveness probe.

    Returns 200 if the process is running.
    """

    def get(self, request):
        return JsonResponse({"status": "alive"})


class ReadinessView(View):
    """
    Kubernetes readiness probe.

    Returns 200 if the default database answers.
    """

    def get(self, request):
        db_check = HealthCheck.check_database("default")
        if db_check["status"] == "healthy":
            return JsonResponse({"status": "ready", "database": db_check})
        return JsonResponse({"status": "not_ready", "database": db_check}, status=503)


class FullHealthView(View):
    """
    Full health check for debugging and dashboards.

    Should be protected in production (internal network only).
    """

    def get(self, request):
        health = HealthCheck.get_full_health()
        status_code = 200 if health["status"] == "healthy" else 503
        return JsonResponse(health, status=status_code)
