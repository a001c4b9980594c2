# analytics/reports.py
"""
Dashboard reports.

Company, job and platform figures are read from the stored aggregates (range
queries over the daily buckets for windows, the all-time row for
totals). Student figures are per actor, which no aggregate is keyed by,
so they come from the event log directly.
"""

from datetime import date, datetime, time, timezone as dt_timezone
from typing import Dict, Iterable, List, Optional

from django.conf import settings
from django.db.models import Count, Sum

from analytics.models import Aggregate
from analytics.periods import ALL_TIME, day_range, window
from events.models import Event
from events.types import Metrics

# Metrics shown on the company dashboard, with their response keys.
COMPANY_METRICS = {
    Metrics.JOB_VIEW: "views",
    Metrics.APPLICATION_SUBMIT: "applications",
    Metrics.INTERVIEW_SCHEDULED: "interviews",
}


def _report_days(days: Optional[int]) -> int:
    return days or settings.ANALYTICS_REPORT_DAYS


def sum_daily(metric: str, start: date, end: date, *, subject_ids: Optional[Iterable[str]] = None,
              company=None) -> int:
    """Sum of the daily buckets from start to end (inclusive)."""
    qs = Aggregate.objects.filter(metric=metric, period__in=day_range(start, end))
    if subject_ids is not None:
        qs = qs.filter(subject_id__in=[str(s) for s in subject_ids])
    if company is not None:
        qs = qs.filter(company=company)
    return qs.aggregate(total=Sum("value"))["total"] or 0


def daily_series(metric: str, company, start: date, end: date,
                 subject_ids: Optional[Iterable[str]] = None) -> List[Dict]:
    """Per-day totals for a company, with zero for days without activity."""
    days = day_range(start, end)
    qs = Aggregate.objects.filter(metric=metric, company=company, period__in=days)
    if subject_ids is not None:
        qs = qs.filter(subject_id__in=[str(s) for s in subject_ids])
    per_day = dict(qs.values("period").annotate(total=Sum("value")).values_list("period", "total"))
    return [{"date": day, "value": per_day.get(day, 0)} for day in days]


def _all_time_by_subject(subject_ids: List[str], metrics: Iterable[str]) -> Dict[tuple, int]:
    rows = Aggregate.objects.filter(
        period=ALL_TIME,
        metric__in=list(metrics),
        subject_id__in=subject_ids,
    ).values_list("metric", "subject_id", "value")
    return {(metric, subject_id): value for metric, subject_id, value in rows}


def company_performance(company, days: Optional[int] = None) -> Dict:
    """
    Totals over the last ``days`` days plus per-job all-time counters.
    """
    from jobs.models import Job

    days = _report_days(days)
    start, end = window(days)

    totals = {
        f"total_{key}": sum_daily(metric, start, end, company=company)
        for metric, key in COMPANY_METRICS.items()
    }

    jobs = list(Job.objects.filter(company=company).order_by("-created_at"))
    subject_ids = [str(job.public_id) for job in jobs]
    counts = _all_time_by_subject(subject_ids, list(COMPANY_METRICS) + [Metrics.JOB_SAVE])

    job_details = []
    for job in jobs:
        sid = str(job.public_id)
        job_details.append({
            "job_id": sid,
            "title": job.title,
            "status": job.status,
            "is_active": job.is_active,
            "views": counts.get((Metrics.JOB_VIEW, sid), 0),
            "applications": counts.get((Metrics.APPLICATION_SUBMIT, sid), 0),
            "interviews": counts.get((Metrics.INTERVIEW_SCHEDULED, sid), 0),
            "saves": counts.get((Metrics.JOB_SAVE, sid), 0),
        })

    return {
        "company_id": company.pk,
        "company_public_id": str(company.public_id),
        "days": days,
        "start": start.isoformat(),
        "end": end.isoformat(),
        **totals,
        "active_jobs": sum(1 for job in jobs if job.is_active),
        "jobs": job_details,
    }


def personal_summary(user, days: Optional[int] = None) -> Dict:
    """A student's own activity over the last ``days`` days."""
    from jobs.models import Application, Interview

    days = _report_days(days)
    start, end = window(days)
    since = datetime.combine(start, time.min, tzinfo=dt_timezone.utc)

    events = Event.objects.filter(actor=user, occurred_at__gte=since)
    by_metric = dict(
        events.order_by().values("metric").annotate(total=Count("id")).values_list("metric", "total")
    )

    applications = Application.objects.filter(student=user)
    status_counts = {
        status: applications.filter(status=status).count()
        for status in Application.Status.values
    }

    return {
        "days": days,
        "start": start.isoformat(),
        "end": end.isoformat(),
        "jobs_viewed": by_metric.get(Metrics.JOB_VIEW, 0),
        "applications_submitted": by_metric.get(Metrics.APPLICATION_SUBMIT, 0),
        "jobs_saved": by_metric.get(Metrics.JOB_SAVE, 0),
        "interviews": Interview.objects.filter(application__student=user, created_at__gte=since).count(),
        "applications_by_status": status_counts,
    }


def job_stats(job, days: Optional[int] = None) -> Dict:
    """All-time counters of one job plus its daily views and applications."""
    days = _report_days(days)
    start, end = window(days)
    sid = str(job.public_id)
    counts = _all_time_by_subject([sid], list(COMPANY_METRICS) + [Metrics.JOB_SAVE])

    return {
        "job_id": sid,
        "title": job.title,
        "views": counts.get((Metrics.JOB_VIEW, sid), 0),
        "applications": counts.get((Metrics.APPLICATION_SUBMIT, sid), 0),
        "interviews": counts.get((Metrics.INTERVIEW_SCHEDULED, sid), 0),
        "saves": counts.get((Metrics.JOB_SAVE, sid), 0),
        "daily_views": daily_series(Metrics.JOB_VIEW, job.company, start, end, subject_ids=[sid]),
        "daily_applications": daily_series(Metrics.APPLICATION_SUBMIT, job.company, start, end, subject_ids=[sid]),
    }


def _all_time_total(metric: str) -> int:
    return Aggregate.objects.filter(metric=metric, period=ALL_TIME).aggregate(total=Sum("value"))["total"] or 0


def platform_stats(days: Optional[int] = None) -> Dict:
    """
    Platform-wide totals for the admin dashboard.

    Activity counters (views, applications, interviews, saves) come from the
    aggregates: all-time rows for totals, daily buckets for the window.
    Users, companies and jobs are not events, so they are counted directly.
    """
    from accounts.models import Company, User
    from jobs.models import Job

    days = _report_days(days)
    start, end = window(days)
    since = datetime.combine(start, time.min, tzinfo=dt_timezone.utc)

    activity = {}
    for metric in Metrics.all():
        activity[metric] = {
            "total": _all_time_total(metric),
            "recent": sum_daily(metric, start, end),
        }

    return {
        "days": days,
        "start": start.isoformat(),
        "end": end.isoformat(),
        "total_users": User.objects.count(),
        "total_companies": Company.objects.count(),
        "total_jobs": Job.objects.count(),
        "recent_users": User.objects.filter(date_joined__gte=since).count(),
        "recent_jobs": Job.objects.filter(created_at__gte=since).count(),
        "activity": activity,
    }
