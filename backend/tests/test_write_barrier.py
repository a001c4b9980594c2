# tests/test_write_barrier.py
"""
Tests for write barrier enforcement.
"""

import pytest

from analytics.models import Aggregate
from analytics.periods import ALL_TIME
from analytics.reconciler import bump
from analytics.write_barrier import current_write_context, reconciler_writes_allowed
from events.types import Metrics


@pytest.mark.django_db
def test_direct_create_raises(company):
    with pytest.raises(RuntimeError, match="reconciler_writes_allowed"):
        Aggregate.objects.create(company=company, metric=Metrics.JOB_VIEW, subject_id="j-1", period=ALL_TIME)


@pytest.mark.django_db
def test_direct_model_save_raises(company):
    bump(Metrics.JOB_VIEW, "j-1", ALL_TIME, company=company)
    row = Aggregate.objects.get(subject_id="j-1")

    row.value = 1000
    with pytest.raises(RuntimeError, match="owned by the aggregate reconciler"):
        row.save()

    with pytest.raises(RuntimeError, match="delete"):
        row.delete()


@pytest.mark.django_db
def test_queryset_writes_raise(company):
    bump(Metrics.JOB_VIEW, "j-1", ALL_TIME, company=company)
    qs = Aggregate.objects.filter(subject_id="j-1")

    with pytest.raises(RuntimeError, match="QuerySet.update"):
        qs.update(value=0)
    with pytest.raises(RuntimeError, match="QuerySet.delete"):
        qs.delete()
    with pytest.raises(RuntimeError, match="QuerySet.bulk_create"):
        Aggregate.objects.bulk_create([
            Aggregate(company=company, metric=Metrics.JOB_SAVE, subject_id="j-1", period=ALL_TIME),
        ])

    assert Aggregate.objects.get(subject_id="j-1").value == 1


@pytest.mark.django_db
def test_reconciler_context_allows_writes(company):
    with reconciler_writes_allowed():
        row = Aggregate.objects.create(company=company, metric=Metrics.JOB_VIEW, subject_id="j-2", period=ALL_TIME)
        row.value = 4
        row.save()

    assert Aggregate.objects.get(pk=row.pk).value == 4


def test_context_is_restored_after_exit():
    assert current_write_context() is None
    with reconciler_writes_allowed():
        with reconciler_writes_allowed():
            assert current_write_context() == "reconciler"
        assert current_write_context() == "reconciler"
    assert current_write_context() is None


def test_context_is_restored_after_error():
    with pytest.raises(ValueError):
        with reconciler_writes_allowed():
            raise ValueError("boom")
    assert current_write_context() is None
