# analytics/models.py
"""
Aggregate read model.

An Aggregate is a denormalized counter over the event log, keyed by
(metric, subject_id, period). Only the reconciler writes it: every
write path (save, delete, and the bulk queryset methods) checks the
write barrier.
"""

from django.db import models

from accounts.models import Company
from analytics.write_barrier import assert_reconciler_context
from events.types import Metrics


class AggregateQuerySet(models.QuerySet):
    def update(self, **kwargs):
        assert_reconciler_context("Aggregate", "QuerySet.update()")
        return super().update(**kwargs)

    def create(self, **kwargs):
        assert_reconciler_context("Aggregate", "QuerySet.create()")
        return super().create(**kwargs)

    def bulk_create(self, objs, *args, **kwargs):
        assert_reconciler_context("Aggregate", "QuerySet.bulk_create()")
        return super().bulk_create(objs, *args, **kwargs)

    def bulk_update(self, objs, *args, **kwargs):
        assert_reconciler_context("Aggregate", "QuerySet.bulk_update()")
        return super().bulk_update(objs, *args, **kwargs)

    def delete(self):
        assert_reconciler_context("Aggregate", "QuerySet.delete()")
        return super().delete()

    def all_time(self):
        return self.filter(period="all")

    def for_subject(self, metric: str, subject_id: str):
        return self.filter(metric=metric, subject_id=str(subject_id))


class Aggregate(models.Model):
    """
    Stored count for one (metric, subject, period).

    period is "all" or a UTC day in ISO form (YYYY-MM-DD).
    """

    metric = models.CharField(max_length=50, choices=Metrics.choices())
    subject_id = models.CharField(max_length=64)
    period = models.CharField(max_length=10)

    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="aggregates",
    )

    value = models.BigIntegerField(default=0)

    updated_at = models.DateTimeField(auto_now=True, db_index=True)
    last_reconciled_at = models.DateTimeField(null=True, blank=True)

    objects = AggregateQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["metric", "subject_id", "period"],
                name="uniq_aggregate_metric_subject_period",
            ),
        ]
        indexes = [
            models.Index(fields=["company", "metric", "period"], name="aggregate_company_metric_idx"),
        ]

    def __str__(self):
        return f"{self.metric}/{self.subject_id}/{self.period} = {self.value}"

    def save(self, *args, **kwargs):
        assert_reconciler_context(self.__class__.__name__, "save()")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        assert_reconciler_context(self.__class__.__name__, "delete()")
        return super().delete(*args, **kwargs)
