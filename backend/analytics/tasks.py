"""
Celery tasks for aggregate reconciliation and dashboard broadcast.

Tasks:
- dashboard_tick: Every ANALYTICS_TICK_SECONDS. Recomputes aggregates
  touched by recent events, then pushes changed all-time values to the
  company dashboard channels. Skip-if-busy: a tick that finds the
  previous one still running does nothing.
- reconcile_all_aggregates: Nightly. Recomputes every known aggregate
  from the event log.

Usage:
    # Scheduled via CELERY_BEAT_SCHEDULE in settings

    # Manual full repair
    from analytics.tasks import reconcile_all_aggregates
    reconcile_all_aggregates.delay()
"""
import logging
import time
import uuid
from datetime import timedelta
from typing import Optional

from celery import shared_task
from django.conf import settings
from django.core.cache import cache
from django.db.models import Q
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from ops.metrics import TICK_DURATION, TICK_RUNS

logger = logging.getLogger(__name__)

TICK_LOCK_KEY = "analytics:dashboard-tick:lock"
LAST_TICK_KEY = "analytics:dashboard-tick:last-run"


def get_last_tick_at():
    """Start time of the last completed tick, or None."""
    value = cache.get(LAST_TICK_KEY)
    return parse_datetime(value) if value else None


def acquire_tick_lock() -> Optional[str]:
    """Try to take the tick lock without waiting. Returns the owner token, or None if held."""
    token = uuid.uuid4().hex
    if cache.add(TICK_LOCK_KEY, token, timeout=settings.ANALYTICS_TICK_LOCK_SECONDS):
        return token
    return None


def release_tick_lock(token: str) -> bool:
    """Release the lock if ``token`` still owns it (it may have expired and been retaken)."""
    if cache.get(TICK_LOCK_KEY) == token:
        cache.delete(TICK_LOCK_KEY)
        return True
    return False


def reconcile_recent(now) -> int:
    """Recompute the keys touched by events recorded within the reconcile window."""
    from analytics.reconciler import at_risk_keys, recompute

    since = now - timedelta(seconds=settings.ANALYTICS_RECONCILE_WINDOW_SECONDS)
    keys = at_risk_keys(since)
    corrected = 0
    for metric, subject_id, period in keys:
        try:
            result = recompute(metric, subject_id, period)
        except Exception:
            logger.exception(
                "Recompute failed",
                extra={"metric": metric, "subject_id": subject_id, "period": period},
            )
            continue
        if result.drifted:
            corrected += 1
    return corrected


def broadcast_changes(since, now, *, reconciled_since=None, channel_layer=None) -> int:
    """
    Publish every all-time aggregate updated since ``since``.

    With ``reconciled_since``, aggregates recomputed at or after that time are
    published too. updated_at is stamped when a bump runs, not when it
    commits, so a bump committing after the previous tick started can carry
    an older updated_at; its key is still inside the reconcile window.
    """
    from analytics.broadcast import publish_aggregate
    from analytics.models import Aggregate

    changed_filter = Q(updated_at__gte=since)
    if reconciled_since is not None:
        changed_filter |= Q(last_reconciled_at__gte=reconciled_since)

    changed = (
        Aggregate.objects.all_time()
        .filter(changed_filter)
        .values_list("company_id", "metric", "subject_id", "value")
        .order_by("company_id", "metric", "subject_id")
    )
    published = 0
    for company_id, metric, subject_id, value in changed:
        publish_aggregate(company_id, metric, subject_id, value, now, channel_layer=channel_layer)
        published += 1
    return published


@shared_task(bind=True, ignore_result=True, soft_time_limit=settings.ANALYTICS_TICK_LOCK_SECONDS)
def dashboard_tick(self) -> dict:
    """
    One reconciliation + broadcast tick.

    Returns:
        {"status": "skipped"} when the previous tick still holds the lock,
        {"status": "failed"} when the tick raised (logged, lock released),
        otherwise counts of reconciled keys and published updates.
    """
    token = acquire_tick_lock()
    if token is None:
        TICK_RUNS.labels(outcome="skipped").inc()
        logger.info("Dashboard tick skipped: previous tick still running")
        return {"status": "skipped"}

    started = timezone.now()
    start = time.time()
    previous = get_last_tick_at()
    since = previous or started - timedelta(seconds=settings.ANALYTICS_RECONCILE_WINDOW_SECONDS)

    try:
        corrected = reconcile_recent(started)
        published = broadcast_changes(since, started, reconciled_since=started)
    except Exception:
        TICK_RUNS.labels(outcome="failed").inc()
        logger.exception("Dashboard tick failed")
        return {"status": "failed"}
    finally:
        TICK_DURATION.observe(time.time() - start)
        release_tick_lock(token)

    cache.set(LAST_TICK_KEY, started.isoformat(), timeout=None)
    TICK_RUNS.labels(outcome="ok").inc()
    logger.info(
        "Dashboard tick complete",
        extra={"corrected": corrected, "published": published, "duration_s": round(time.time() - start, 3)},
    )
    return {"status": "ok", "corrected": corrected, "published": published}


@shared_task(bind=True)
def reconcile_all_aggregates(self, company_id: Optional[int] = None) -> dict:
    """
    Recompute every aggregate from the event log.

    Includes keys present only in the event log (backfill) and rows with no
    remaining events (zeroed).

    Args:
        company_id: Limit the repair to one company

    Returns:
        Summary with checked / corrected / failed counts
    """
    from accounts.models import Company
    from analytics.reconciler import known_keys, recompute

    company = None
    if company_id is not None:
        try:
            company = Company.objects.get(id=company_id)
        except Company.DoesNotExist:
            logger.error(f"Company {company_id} not found")
            return {"error": f"Company {company_id} not found"}

    logger.info("Reconciling all aggregates", extra={"company_id": company_id})

    checked = corrected = failed = 0
    for metric, subject_id, period in known_keys(company=company):
        try:
            result = recompute(metric, subject_id, period, company=company)
        except Exception:
            failed += 1
            logger.exception(
                "Recompute failed",
                extra={"metric": metric, "subject_id": subject_id, "period": period},
            )
            continue
        checked += 1
        if result.drifted:
            corrected += 1

    logger.info(
        f"Reconciled {checked} aggregates ({corrected} corrected, {failed} failed)",
        extra={"company_id": company_id},
    )
    return {"checked": checked, "corrected": corrected, "failed": failed}
