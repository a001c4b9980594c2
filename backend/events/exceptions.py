"""
Errors raised by the event recorder and the aggregate reconciler.

Every error carries a stable machine-readable ``code`` plus optional
``details``; the API layer (ops.exception_handler) turns them into
``{"error": {"code", "message", "details"}}`` responses.
"""
from typing import Any, Dict, Optional


class AnalyticsError(Exception):
    """Base class for recorder and reconciler errors."""

    code = "analytics_error"
    status_code = 500

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(AnalyticsError):
    """Unknown metric, missing identifiers, or a payload that fails its schema."""

    code = "invalid_event"
    status_code = 400


class ConflictError(AnalyticsError):
    """A natural key that already exists, when the caller asked to hear about it."""

    code = "conflict"
    status_code = 409


class StorageError(AnalyticsError):
    """The database could not complete the write (connectivity, timeout, constraint)."""

    code = "storage_unavailable"
    status_code = 503


class DriftError(AnalyticsError):
    """
    A stored aggregate disagrees with the event log.

    Internal only: recompute catches it, logs it and overwrites the value.
    """

    code = "aggregate_drift"

    def __init__(self, metric: str, subject_id: str, period: str, stored: int, actual: int):
        super().__init__(
            f"Aggregate {metric}/{subject_id}/{period} drifted: stored={stored} actual={actual}",
            details={
                "metric": metric,
                "subject_id": subject_id,
                "period": period,
                "stored": stored,
                "actual": actual,
            },
        )
        self.stored = stored
        self.actual = actual
