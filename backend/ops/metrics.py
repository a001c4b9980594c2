"""
Prometheus metrics.

Counters are incremented by the recorder, reconciler and tick as they run;
gauges over the stored data are refreshed on each scrape of /_metrics.

Metrics exposed:
- recruitment_events_recorded_total: Events appended, by metric
- recruitment_events_deduplicated_total: Records that hit an existing dedup key
- recruitment_aggregate_bump_failures_total: Inline bumps that failed after the event was stored
- recruitment_aggregate_drift_total: Aggregates corrected by recompute
- recruitment_tick_runs_total: Dashboard ticks, by outcome (ok/skipped/failed)
- recruitment_tick_duration_seconds: Dashboard tick duration histogram
- recruitment_events_stored: Events in the log, by metric
- recruitment_request_duration_seconds: HTTP request duration histogram
"""
import logging
import re
import time

from django.db.models import Count
from django.http import HttpResponse
from django.views import View
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

logger = logging.getLogger(__name__)


EVENTS_RECORDED = Counter(
    "recruitment_events_recorded_total",
    "Events appended to the event log",
    ["metric"],
)

EVENTS_DEDUPLICATED = Counter(
    "recruitment_events_deduplicated_total",
    "Record calls that matched an existing dedup key",
    ["metric"],
)

BUMP_FAILURES = Counter(
    "recruitment_aggregate_bump_failures_total",
    "Inline aggregate increments that failed after the event was stored",
    ["metric"],
)

DRIFT_CORRECTIONS = Counter(
    "recruitment_aggregate_drift_total",
    "Aggregates whose stored value disagreed with the event log",
    ["metric"],
)

TICK_RUNS = Counter(
    "recruitment_tick_runs_total",
    "Dashboard reconciliation ticks",
    ["outcome"],
)

TICK_DURATION = Histogram(
    "recruitment_tick_duration_seconds",
    "Dashboard tick duration in seconds",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

EVENTS_STORED = Gauge(
    "recruitment_events_stored",
    "Events in the event log",
    ["metric"],
)

REQUEST_DURATION = Histogram(
    "recruitment_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

ACTIVE_REQUESTS = Gauge(
    "recruitment_active_requests",
    "Number of requests currently being processed",
)


def collect_metrics():
    """Refresh gauges that are computed from stored data."""
    from events.models import Event

    try:
        counts = Event.objects.values("metric").annotate(count=Count("id"))
        for row in counts:
            EVENTS_STORED.labels(metric=row["metric"]).set(row["count"])
    except Exception:
        logger.exception("Error collecting event metrics")


class MetricsView(View):
    """
    Prometheus metrics endpoint.

    Exposes metrics in Prometheus format at /_metrics.
    Should be protected in production (internal network only).
    """

    def get(self, request):
        collect_metrics()
        return HttpResponse(generate_latest(), content_type=CONTENT_TYPE_LATEST)


def _normalize_endpoint(path: str) -> str:
    path = re.sub(r"/[0-9a-f]{8}-[0-9a-f-]{27}/", "/{uuid}/", path)
    path = re.sub(r"/\d+/", "/{id}/", path)
    return path[:50]


def track_request_metrics(get_response):
    """
    Middleware to track request duration metrics.

    Add to MIDDLEWARE after SecurityMiddleware:
        "ops.metrics.track_request_metrics",
    """

    def middleware(request):
        start = time.time()
        status = 500
        ACTIVE_REQUESTS.inc()
        try:
            response = get_response(request)
            status = response.status_code
            return response
        finally:
            ACTIVE_REQUESTS.dec()
            REQUEST_DURATION.labels(
                method=request.method,
                endpoint=_normalize_endpoint(request.path),
                status=f"{status // 100}xx",
            ).observe(time.time() - start)

    return middleware
