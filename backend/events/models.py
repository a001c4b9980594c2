# events/models.py
"""
Event log models.

The Event table is the source of truth for every counter on the
platform. Events are immutable once created; aggregates in the
analytics app are a cache over this table and can always be recomputed
from it.
"""

import uuid

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from accounts.models import Company
from events.types import Metrics


class Event(models.Model):
    """
    Immutable record that something countable happened.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="events",
        help_text="Company whose dashboard this event feeds",
    )

    metric = models.CharField(
        max_length=50,
        choices=Metrics.choices(),
        help_text="Metric name (e.g., 'job_view')",
    )

    subject_type = models.CharField(
        max_length=20,
        help_text="Kind of thing being counted (job, company)",
    )

    subject_id = models.CharField(
        max_length=64,
        help_text="Public id of the counted subject",
    )

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="events",
        help_text="User who caused this event (empty for anonymous views)",
    )

    data = models.JSONField(
        default=dict,
        help_text="Schema-validated payload for the metric",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Request context (IP, user agent, etc.)",
    )

    # Natural key; a second record with the same key is a no-op.
    dedup_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        editable=False,
    )

    schema_version = models.PositiveSmallIntegerField(
        default=1,
        help_text="Schema version for data migration",
    )

    occurred_at = models.DateTimeField(
        default=timezone.now,
        help_text="Advisory client/server time of the action; used for day buckets",
    )

    recorded_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
    )

    class Meta:
        ordering = ["recorded_at"]
        indexes = [
            models.Index(fields=["metric", "subject_id", "occurred_at"], name="event_metric_subject_idx"),
            models.Index(fields=["company", "metric", "occurred_at"], name="event_company_metric_idx"),
            models.Index(fields=["actor", "metric"], name="event_actor_metric_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["dedup_key"],
                condition=Q(dedup_key__isnull=False),
                name="uniq_event_dedup_key",
            ),
        ]

    def __str__(self):
        return f"{self.metric} [{self.subject_type}#{self.subject_id}] @{self.occurred_at}"

    def save(self, *args, **kwargs):
        # Prevent updates (immutability)
        if not self._state.adding:
            raise ValueError("Events are immutable and cannot be modified.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Events cannot be deleted. The event log is the source of truth for aggregates.")
