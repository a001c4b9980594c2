"""
DRF exception handler.

Maps recorder/reconciler errors to HTTP responses:

    ValidationError -> 400
    ConflictError   -> 409
    StorageError    -> 503

Error body::

    {"error": {"code": "invalid_event", "message": "...", "details": {...}}}

Anything else falls through to DRF's default handler.
"""
import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler

from events.exceptions import AnalyticsError, StorageError

logger = logging.getLogger(__name__)


def analytics_exception_handler(exc, context):
    if not isinstance(exc, AnalyticsError):
        return exception_handler(exc, context)

    view = context.get("view")
    log = logger.error if isinstance(exc, StorageError) else logger.info
    log(
        "Request failed: %s",
        exc.message,
        extra={
            "error_code": exc.code,
            "view": type(view).__name__ if view is not None else None,
        },
    )

    headers = {"Retry-After": "5"} if isinstance(exc, StorageError) else None
    return Response({"error": exc.to_dict()}, status=exc.status_code, headers=headers)
