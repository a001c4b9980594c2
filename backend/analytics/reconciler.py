# analytics/reconciler.py
"""
Aggregate reconciler.

Two ways an aggregate changes:

- bump(): the fast path, called by the recorder right after an event is
  stored. It is a single atomic ``value = value + delta`` statement, so
  concurrent bumps never lose increments.
- recompute(): the repair path, called by the periodic tick and the
  nightly job. It counts the event log and overwrites the stored value.

The event log always wins. A bump that fails after its event was stored
leaves the aggregate short until the next recompute of that key.
"""

import logging
from dataclasses import dataclass
from datetime import timezone as dt_timezone
from typing import List, Optional, Tuple

from django.db import IntegrityError, transaction
from django.db.models import F
from django.db.models.functions import TruncDate
from django.utils import timezone

from analytics.models import Aggregate
from analytics.periods import ALL_TIME, period_bounds
from analytics.write_barrier import reconciler_writes_allowed
from events.exceptions import DriftError, ValidationError
from events.models import Event
from events.types import validate_metric
from ops.metrics import DRIFT_CORRECTIONS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileResult:
    metric: str
    subject_id: str
    period: str
    previous: Optional[int]
    value: int

    @property
    def drifted(self) -> bool:
        return self.previous is not None and self.previous != self.value

    @property
    def created(self) -> bool:
        return self.previous is None


def _check_key(metric: str, subject_id, period: str) -> str:
    validate_metric(metric)
    if subject_id is None or not str(subject_id).strip():
        raise ValidationError("subject_id is required.", details={"metric": metric})
    # Validates the period format.
    period_bounds(period)
    return str(subject_id)


def count_events(metric: str, subject_id: str, period: str = ALL_TIME) -> int:
    """Number of events in the log for one aggregate key."""
    qs = Event.objects.filter(metric=metric, subject_id=str(subject_id))
    start, end = period_bounds(period)
    if start is not None:
        qs = qs.filter(occurred_at__gte=start, occurred_at__lt=end)
    return qs.count()


def _company_id_for(metric: str, subject_id: str) -> Optional[int]:
    return (
        Event.objects.filter(metric=metric, subject_id=subject_id)
        .values_list("company_id", flat=True)
        .first()
    )


def bump(metric: str, subject_id, period: str, delta: int = 1, *, company) -> int:
    """
    Atomically add ``delta`` to an aggregate, creating it if needed.

    Returns:
        The stored value after the increment.
    """
    subject_id = _check_key(metric, subject_id, period)
    company_id = getattr(company, "pk", company)
    key = {"metric": metric, "subject_id": subject_id, "period": period}

    with reconciler_writes_allowed(), transaction.atomic():
        updated = Aggregate.objects.filter(**key).update(
            value=F("value") + delta,
            updated_at=timezone.now(),
        )
        if not updated:
            try:
                # Savepoint, so a lost insert race leaves the outer transaction usable.
                with transaction.atomic():
                    Aggregate.objects.create(company_id=company_id, value=delta, **key)
                return delta
            except IntegrityError:
                Aggregate.objects.filter(**key).update(
                    value=F("value") + delta,
                    updated_at=timezone.now(),
                )
        return Aggregate.objects.filter(**key).values_list("value", flat=True).get()


def verify_aggregate(metric: str, subject_id, period: str = ALL_TIME) -> int:
    """
    Compare a stored aggregate against the event log.

    Returns:
        The event count.

    Raises:
        DriftError: If the stored value disagrees with the count.
    """
    subject_id = _check_key(metric, subject_id, period)
    actual = count_events(metric, subject_id, period)
    stored = (
        Aggregate.objects.filter(metric=metric, subject_id=subject_id, period=period)
        .values_list("value", flat=True)
        .first()
    )
    if stored is not None and stored != actual:
        raise DriftError(metric, subject_id, period, stored, actual)
    return actual


def recompute(metric: str, subject_id, period: str = ALL_TIME, *, company=None) -> ReconcileResult:
    """
    Overwrite an aggregate with the event-log count.

    The row is locked while counting, so concurrent bumps queue behind the
    overwrite instead of being lost. Drift is logged and corrected here;
    it never reaches the caller as an error.
    """
    subject_id = _check_key(metric, subject_id, period)
    key = {"metric": metric, "subject_id": subject_id, "period": period}

    with reconciler_writes_allowed(), transaction.atomic():
        row = Aggregate.objects.select_for_update().filter(**key).first()
        previous = row.value if row is not None else None

        try:
            actual = verify_aggregate(metric, subject_id, period)
        except DriftError as exc:
            actual = exc.actual
            DRIFT_CORRECTIONS.labels(metric=metric).inc()
            logger.warning(
                "Aggregate drift corrected",
                extra={
                    "metric": metric,
                    "subject_id": subject_id,
                    "period": period,
                    "stored": exc.stored,
                    "actual": exc.actual,
                },
            )

        now = timezone.now()
        if row is not None:
            Aggregate.objects.filter(pk=row.pk).update(
                value=actual,
                updated_at=now if actual != previous else row.updated_at,
                last_reconciled_at=now,
            )
        else:
            company_id = getattr(company, "pk", company) or _company_id_for(metric, subject_id)
            if company_id is None:
                # No events and no row: nothing to store.
                return ReconcileResult(metric, subject_id, period, None, 0)
            try:
                with transaction.atomic():
                    Aggregate.objects.create(
                        company_id=company_id,
                        value=actual,
                        last_reconciled_at=now,
                        **key,
                    )
            except IntegrityError:
                # A concurrent bump created the row first.
                actual = count_events(metric, subject_id, period)
                Aggregate.objects.filter(**key).update(
                    value=actual, updated_at=now, last_reconciled_at=now,
                )

    return ReconcileResult(metric, subject_id, period, previous, actual)


def current_value(metric: str, subject_id, period: str = ALL_TIME) -> int:
    """Stored value of an aggregate; 0 when it has never been written."""
    value = (
        Aggregate.objects.filter(metric=metric, subject_id=str(subject_id), period=period)
        .values_list("value", flat=True)
        .first()
    )
    return value or 0


def _event_keys(events) -> set:
    """All-time and daily keys touched by an Event queryset."""
    rows = (
        events.order_by()
        .annotate(day=TruncDate("occurred_at", tzinfo=dt_timezone.utc))
        .values_list("metric", "subject_id", "day")
        .distinct()
    )
    keys = set()
    for metric, subject_id, day in rows:
        keys.add((metric, subject_id, ALL_TIME))
        keys.add((metric, subject_id, day.isoformat()))
    return keys


def at_risk_keys(since) -> List[Tuple[str, str, str]]:
    """
    Keys that may have drifted: those touched by events recorded since ``since``.

    Covers the all-time period and every day bucket the events fall in.
    """
    return sorted(_event_keys(Event.objects.filter(recorded_at__gte=since)))


def known_keys(*, metric: Optional[str] = None, subject_id: Optional[str] = None,
               company=None) -> List[Tuple[str, str, str]]:
    """
    Every key that exists either as a stored aggregate or in the event log.

    Stored aggregates without events are included so recompute can zero them.
    """
    events = Event.objects.all()
    aggregates = Aggregate.objects.all()
    if metric:
        validate_metric(metric)
        events = events.filter(metric=metric)
        aggregates = aggregates.filter(metric=metric)
    if subject_id:
        events = events.filter(subject_id=str(subject_id))
        aggregates = aggregates.filter(subject_id=str(subject_id))
    if company is not None:
        events = events.filter(company=company)
        aggregates = aggregates.filter(company=company)

    keys = _event_keys(events)
    keys.update(aggregates.values_list("metric", "subject_id", "period"))
    return sorted(keys)
