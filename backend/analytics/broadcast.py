# analytics/broadcast.py
"""
Push channel for dashboard updates.

Channel names follow the platform's room naming:
- company-<company id>: every aggregate of that company (staff only)
- job-<job public id>: the counters of one job (public)

Sending to a group nobody has joined is a no-op in the channel layer.
"""

import logging
from datetime import datetime
from typing import Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from events.types import METRIC_SUBJECT_TYPES, SubjectTypes

logger = logging.getLogger(__name__)

MESSAGE_TYPE = "aggregate.update"


def channel_for_company(company_id) -> str:
    return f"company-{company_id}"


def channel_for_job(job_public_id) -> str:
    return f"job-{job_public_id}"


def aggregate_message(metric: str, subject_id: str, value: int, as_of: datetime) -> dict:
    """Wire format of one aggregate update."""
    return {
        "metric": metric,
        "subject_id": str(subject_id),
        "value": int(value),
        "as_of": as_of.isoformat(),
    }


def publish_aggregate(company_id, metric: str, subject_id: str, value: int, as_of: datetime,
                      *, channel_layer=None) -> Optional[dict]:
    """
    Send one all-time aggregate to its company channel, and to the job
    channel when the subject is a job.

    Returns the message sent, or None when no channel layer is configured.
    """
    channel_layer = channel_layer or get_channel_layer()
    if channel_layer is None:
        logger.warning("No channel layer configured; dashboard update dropped")
        return None

    message = aggregate_message(metric, subject_id, value, as_of)
    groups = [channel_for_company(company_id)]
    if METRIC_SUBJECT_TYPES.get(metric) == SubjectTypes.JOB:
        groups.append(channel_for_job(subject_id))

    for group in groups:
        async_to_sync(channel_layer.group_send)(
            group,
            {"type": MESSAGE_TYPE, "channel": group, **message},
        )
    return message
