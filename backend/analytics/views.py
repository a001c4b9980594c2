# analytics/views.py
"""
Dashboard API views.

Endpoints:
- GET  /api/analytics/company/performance/   - company staff (admins pass ?company=<public_id>)
- GET  /api/analytics/company/daily/          - ?metric=job_view&days=30
- GET  /api/analytics/personal/               - the signed-in student's own activity
- GET  /api/analytics/jobs/<public_id>/stats/ - hiring company staff
- GET  /api/analytics/dashboard-stats/        - platform admins; platform-wide totals
- POST /api/analytics/track/                  - record a client-observed view
- POST /api/analytics/admin/reconcile/        - platform admins; queues a full repair
"""

from django.conf import settings
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.authz import resolve_actor
from accounts.models import Company
from accounts.throttles import TrackThrottle
from analytics import reports
from analytics.periods import window
from analytics.tasks import reconcile_all_aggregates
from events.exceptions import ValidationError
from events.types import Metrics, parse_public_id, validate_metric

MAX_REPORT_DAYS = 365


def _days_param(request):
    raw = request.query_params.get("days")
    if raw is None:
        return None
    try:
        days = int(raw)
    except (TypeError, ValueError):
        raise ValidationError("'days' must be an integer.", details={"days": raw})
    if not 1 <= days <= MAX_REPORT_DAYS:
        raise ValidationError(
            f"'days' must be between 1 and {MAX_REPORT_DAYS}.",
            details={"days": days},
        )
    return days


def _company_for(request):
    actor = resolve_actor(request)
    if actor.is_admin:
        public_id = request.query_params.get("company")
        if public_id:
            return get_object_or_404(Company, public_id=parse_public_id(public_id, "company"))
    return actor.require_company()


class CompanyPerformanceView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        company = _company_for(request)
        return Response(reports.company_performance(company, days=_days_param(request)))


class CompanyDailyView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        company = _company_for(request)
        metric = request.query_params.get("metric", Metrics.JOB_VIEW)
        validate_metric(metric)
        days = _days_param(request) or settings.ANALYTICS_REPORT_DAYS
        start, end = window(days)
        return Response({
            "metric": metric,
            "days": days,
            "series": reports.daily_series(metric, company, start, end),
        })


class PersonalSummaryView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        if not actor.is_student:
            raise PermissionDenied("Personal analytics are available to students.")
        return Response(reports.personal_summary(actor.user, days=_days_param(request)))


class JobStatsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, public_id):
        from jobs.models import Job

        actor = resolve_actor(request)
        job = get_object_or_404(Job.objects.select_related("company"), public_id=public_id)
        if not actor.can_manage(job.company):
            raise PermissionDenied("Only the hiring company can see job analytics.")
        return Response(reports.job_stats(job, days=_days_param(request)))


class ReconcileView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        actor = resolve_actor(request)
        if not actor.is_admin:
            raise PermissionDenied("Administrator access required.")

        company_id = None
        public_id = request.data.get("company")
        if public_id:
            company_id = get_object_or_404(Company, public_id=parse_public_id(public_id, "company")).pk

        result = reconcile_all_aggregates.delay(company_id=company_id)
        return Response(
            {"task_id": result.id, "status": "queued"},
            status=status.HTTP_202_ACCEPTED,
        )


class DashboardStatsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        if not actor.is_admin:
            raise PermissionDenied("Administrator access required.")
        return Response(reports.platform_stats(days=_days_param(request)))


# Metrics a client may report itself. Applications, interviews and saves are
# recorded by the job board commands that create them.
TRACKABLE_METRICS = (Metrics.JOB_VIEW, Metrics.COMPANY_VIEW)


class TrackView(APIView):
    """
    POST /api/analytics/track/

    Body: {"metric": "job_view", "subject_id": "<job or company public id>", "source": "email"}

    Records a view reported by the client (e.g. a job card opened in the
    app) through the same command as the job board, so the per-day dedup
    applies.
    """

    permission_classes = [IsAuthenticated]
    throttle_classes = [TrackThrottle]

    def post(self, request):
        from jobs import commands
        from jobs.models import Job
        from jobs.views import request_metadata

        actor = resolve_actor(request)
        metric = request.data.get("metric")
        if not isinstance(metric, str) or not metric:
            raise ValidationError("'metric' is required.", details={"metric": metric})
        validate_metric(metric)
        if metric not in TRACKABLE_METRICS:
            raise ValidationError(
                f"Metric '{metric}' cannot be tracked by clients.",
                details={"metric": metric, "allowed": list(TRACKABLE_METRICS)},
            )
        subject_id = parse_public_id(request.data.get("subject_id"), "subject_id")

        if metric == Metrics.JOB_VIEW:
            job = get_object_or_404(Job.objects.select_related("company"), public_id=subject_id, is_active=True)
            result = commands.view_job(actor, job, request_metadata(request))
        else:
            company = get_object_or_404(Company, public_id=subject_id, is_active=True)
            result = commands.view_company(actor, company, request_metadata(request))

        return Response({
            "metric": metric,
            "subject_id": str(subject_id),
            "counted": result.created,
            "value": result.data["view_count"],
        })
