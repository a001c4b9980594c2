# tests/test_ops.py
"""
Tests for auth endpoints, error responses, health checks, metrics and
logging configuration.
"""

import json
import logging
import pytest
from datetime import timedelta

from django.core.cache import cache
from django.utils import timezone

from analytics.tasks import LAST_TICK_KEY
from events.exceptions import ConflictError, StorageError, ValidationError
from ops.exception_handler import analytics_exception_handler
from ops.health import HealthCheck
from ops.logging_config import JsonFormatter, get_logging_config
from ops.metrics import _normalize_endpoint


# =============================================================================
# Auth
# =============================================================================

@pytest.mark.django_db
class TestAuthAPI:

    def test_login_returns_tokens_and_user(self, api_client, staff_user):
        response = api_client.post(
            "/api/auth/login/",
            {"email": "recruiter@test.com", "password": "testpass123"},
            format="json",
        )

        assert response.status_code == 200
        assert response.data["access"]
        assert response.data["refresh"]
        assert response.data["user"]["role"] == "COMPANY"
        assert response.data["user"]["company"]["slug"] == "test-company"

    def test_bad_password(self, api_client, staff_user):
        response = api_client.post(
            "/api/auth/login/",
            {"email": "recruiter@test.com", "password": "wrong"},
            format="json",
        )
        assert response.status_code == 401

    def test_token_authenticates_me(self, api_client, student):
        login = api_client.post(
            "/api/auth/login/",
            {"email": "student@test.com", "password": "testpass123"},
            format="json",
        )
        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {login.data['access']}")

        response = api_client.get("/api/auth/me/")

        assert response.status_code == 200
        assert response.data["email"] == "student@test.com"
        assert response.data["company"] is None

    def test_refresh(self, api_client, student):
        login = api_client.post(
            "/api/auth/login/",
            {"email": "student@test.com", "password": "testpass123"},
            format="json",
        )

        response = api_client.post("/api/auth/refresh/", {"refresh": login.data["refresh"]}, format="json")

        assert response.status_code == 200
        assert response.data["access"]

    def test_me_requires_auth(self, api_client, db):
        assert api_client.get("/api/auth/me/").status_code == 401


# =============================================================================
# Exception handler
# =============================================================================

class TestExceptionHandler:

    def test_validation_error_is_400(self):
        response = analytics_exception_handler(
            ValidationError("bad metric", details={"metric": "x"}), {"view": None},
        )

        assert response.status_code == 400
        assert response.data == {
            "error": {"code": "invalid_event", "message": "bad metric", "details": {"metric": "x"}},
        }

    def test_conflict_is_409(self):
        response = analytics_exception_handler(ConflictError("dup"), {})
        assert response.status_code == 409
        assert response.data["error"]["code"] == "conflict"

    def test_storage_error_is_503_with_retry_after(self):
        response = analytics_exception_handler(StorageError("db down"), {})

        assert response.status_code == 503
        assert response["Retry-After"] == "5"

    def test_other_exceptions_fall_through(self):
        from rest_framework.exceptions import NotFound

        response = analytics_exception_handler(NotFound(), {})
        assert response.status_code == 404

    def test_unhandled_exception_returns_none(self):
        assert analytics_exception_handler(KeyError("x"), {}) is None


# =============================================================================
# Health
# =============================================================================

@pytest.mark.django_db
class TestHealth:

    def test_liveness(self, client):
        response = client.get("/_health/live")
        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    def test_readiness(self, client):
        response = client.get("/_health/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_tick_never_ran_is_degraded(self):
        assert HealthCheck.check_tick()["status"] == "degraded"

    def test_recent_tick_is_healthy(self, settings):
        settings.ANALYTICS_TICK_SECONDS = 5
        cache.set(LAST_TICK_KEY, timezone.now().isoformat())

        assert HealthCheck.check_tick()["status"] == "healthy"

    def test_stale_tick_is_degraded(self, settings):
        settings.ANALYTICS_TICK_SECONDS = 5
        cache.set(LAST_TICK_KEY, (timezone.now() - timedelta(seconds=60)).isoformat())

        check = HealthCheck.check_tick()

        assert check["status"] == "degraded"
        assert check["age_seconds"] >= 60

    def test_full_health(self, client):
        cache.set(LAST_TICK_KEY, timezone.now().isoformat())

        response = client.get("/_health/full")

        assert response.status_code == 200
        body = response.json()
        assert body["checks"]["redis"]["status"] == "skipped"
        assert body["checks"]["databases"]["status"] == "healthy"


# =============================================================================
# Metrics & logging
# =============================================================================

@pytest.mark.django_db
class TestMetrics:

    def test_metrics_endpoint(self, client, job):
        from jobs.commands import view_job

        view_job(None, job)

        response = client.get("/_metrics/")

        assert response.status_code == 200
        body = response.content.decode()
        assert "recruitment_events_recorded_total" in body
        assert 'recruitment_events_stored{metric="job_view"}' in body

    def test_endpoint_normalization(self):
        path = "/api/jobs/123e4567-e89b-12d3-a456-426614174000/view/"
        assert _normalize_endpoint(path) == "/api/jobs/{uuid}/view/"
        assert _normalize_endpoint("/api/things/42/") == "/api/things/{id}/"


class TestLogging:

    def test_json_formatter_includes_extra_fields(self):
        record = logging.LogRecord("analytics.reconciler", logging.WARNING, __file__, 1,
                                   "Aggregate drift corrected", (), None)
        record.metric = "job_view"
        record.stored = 5

        payload = json.loads(JsonFormatter().format(record))

        assert payload["message"] == "Aggregate drift corrected"
        assert payload["level"] == "WARNING"
        assert payload["extra"]["metric"] == "job_view"
        assert payload["extra"]["stored"] == 5

    def test_console_format_in_debug(self, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)

        config = get_logging_config(debug=True)

        assert "verbose" in config["formatters"]
        assert "analytics" in config["loggers"]
