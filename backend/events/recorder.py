# events/recorder.py
"""
Event recorder.

record_event() is THE way to append to the event log. It:

1. Validates the metric, subject and payload (ValidationError, nothing written)
2. Inserts the event in its own atomic block (StorageError on DB failure)
3. Treats a repeated dedup_key as a no-op (or ConflictError when strict)
4. Bumps the all-time and daily aggregates for a newly stored event

Step 4 runs once the insert's atomic block has closed. When the caller
already holds a transaction (jobs.commands wraps each command in one), that
block is a savepoint: the event and its bumps commit, or roll back,
together with the caller's writes. If the bump itself fails the event stays
recorded and the aggregate is short until the tick recomputes it; the
caller is not told, because the fact itself was stored.
"""

import logging
from datetime import datetime, timezone as dt_timezone
from typing import Any, Dict, Optional, Union

from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from events.exceptions import ConflictError, StorageError, ValidationError
from events.models import Event
from events.types import (
    METRIC_SUBJECT_FIELDS,
    METRIC_SUBJECT_TYPES,
    BaseEventData,
    Metrics,
    validate_event_payload,
)
from ops.metrics import BUMP_FAILURES, EVENTS_DEDUPLICATED, EVENTS_RECORDED

logger = logging.getLogger(__name__)


# Metrics deduplicated once per actor per UTC day.
_DAILY_DEDUP = {Metrics.JOB_VIEW, Metrics.COMPANY_VIEW}
# Metrics deduplicated once per actor, ever.
_ONCE_PER_ACTOR = {Metrics.JOB_SAVE}


def dedup_key_for(metric: str, subject_id, actor_id=None, occurred_at: Optional[datetime] = None,
                  *, natural_id=None) -> Optional[str]:
    """
    Build the natural key that makes a repeated action a no-op.

    - job_view / company_view: one per (viewer, subject, UTC day); none for anonymous viewers
    - job_save: one per (user, job)
    - application_submit / interview_scheduled: one per application / interview
      (``natural_id``)

    Returns None when the rule does not apply, so the event is always stored.
    """
    if metric in _DAILY_DEDUP:
        if actor_id is None:
            return None
        occurred_at = occurred_at or timezone.now()
        day = occurred_at.astimezone(dt_timezone.utc).date().isoformat()
        return f"{metric}:{subject_id}:{actor_id}:{day}"
    if metric in _ONCE_PER_ACTOR:
        if actor_id is None:
            return None
        return f"{metric}:{subject_id}:{actor_id}"
    if natural_id is not None:
        return f"{metric}:{natural_id}"
    return None


def _bump_aggregates(event: Event) -> None:
    from analytics.periods import periods_for
    from analytics.reconciler import bump

    for period in periods_for(event.occurred_at):
        try:
            bump(event.metric, event.subject_id, period, 1, company=event.company_id)
        except Exception:
            BUMP_FAILURES.labels(metric=event.metric).inc()
            logger.exception(
                "Aggregate bump failed; tick will reconcile",
                extra={
                    "event_id": str(event.id),
                    "metric": event.metric,
                    "subject_id": event.subject_id,
                    "period": period,
                },
            )


def record_event(
    metric: str,
    subject_id,
    *,
    company,
    data: Union[Dict[str, Any], BaseEventData],
    actor=None,
    metadata: Optional[Dict[str, Any]] = None,
    occurred_at: Optional[datetime] = None,
    dedup_key: Optional[str] = None,
    strict: bool = False,
) -> Event:
    """
    Append an event and bump its aggregates.

    Args:
        metric: One of events.types.Metrics
        subject_id: Public id of the job/company being counted
        company: Company whose dashboard the event feeds
        data: Payload (dict or BaseEventData instance) matching the metric schema
        actor: User who caused the event, None for anonymous
        metadata: Free-form request info, not validated
        occurred_at: When it happened (defaults to now)
        dedup_key: Natural key; see dedup_key_for()
        strict: Raise ConflictError instead of returning the existing event on a duplicate

    Returns:
        The stored Event, or the existing one for a duplicate dedup_key.
        ``event.created`` tells the two apart.

    Raises:
        ValidationError: Unknown metric, missing subject, or payload mismatch
        ConflictError: Duplicate dedup_key with strict=True
        StorageError: The insert could not be completed
    """
    if isinstance(data, BaseEventData):
        data = data.to_dict()

    validate_event_payload(metric, data)

    if subject_id is None or not str(subject_id).strip():
        raise ValidationError("subject_id is required.", details={"metric": metric})
    subject_id = str(subject_id)

    subject_field = METRIC_SUBJECT_FIELDS[metric]
    if str(data[subject_field]) != subject_id:
        raise ValidationError(
            f"Payload field '{subject_field}' does not match subject_id.",
            details={"metric": metric, "subject_id": subject_id, subject_field: data[subject_field]},
        )

    if company is None:
        raise ValidationError("company is required.", details={"metric": metric})

    if occurred_at is None:
        occurred_at = timezone.now()

    try:
        with transaction.atomic():
            event = Event.objects.create(
                company=company,
                metric=metric,
                subject_type=METRIC_SUBJECT_TYPES[metric],
                subject_id=subject_id,
                actor=actor,
                data=data,
                metadata=metadata or {},
                dedup_key=dedup_key,
                occurred_at=occurred_at,
            )
    except IntegrityError as exc:
        existing = Event.objects.filter(dedup_key=dedup_key).first() if dedup_key else None
        if existing is None:
            logger.error(
                "Event insert violated a constraint",
                extra={"metric": metric, "subject_id": subject_id},
            )
            raise StorageError(
                "Event could not be stored.",
                details={"metric": metric, "subject_id": subject_id},
            ) from exc

        EVENTS_DEDUPLICATED.labels(metric=metric).inc()
        if strict:
            raise ConflictError(
                "Event already recorded.",
                details={"metric": metric, "subject_id": subject_id, "event_id": str(existing.id)},
            ) from exc
        logger.debug(
            "Duplicate event ignored",
            extra={"metric": metric, "subject_id": subject_id, "dedup_key": dedup_key},
        )
        existing.created = False
        return existing
    except DatabaseError as exc:
        logger.error(
            "Event store unavailable",
            extra={"metric": metric, "subject_id": subject_id, "error": str(exc)},
        )
        raise StorageError(
            "Event store unavailable.",
            details={"metric": metric, "subject_id": subject_id},
        ) from exc

    event.created = True
    EVENTS_RECORDED.labels(metric=metric).inc()
    logger.info(
        "Event recorded",
        extra={
            "event_id": str(event.id),
            "metric": metric,
            "subject_id": subject_id,
            "company_id": event.company_id,
        },
    )

    _bump_aggregates(event)
    return event
