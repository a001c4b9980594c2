# jobs/views.py
"""
Job board API views.

Read endpoints are public. Tracking endpoints (view) accept anonymous
visitors; everything else needs a JWT. Each write goes through
jobs.commands and returns the post-write counters where they apply.
"""

from django.shortcuts import get_object_or_404
from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.authz import resolve_actor, resolve_optional_actor
from accounts.models import Company
from accounts.throttles import TrackThrottle
from events.types import parse_public_id
from jobs import commands
from jobs.commands import job_counts
from jobs.models import Application, Job
from jobs.serializers import (
    ApplicationSerializer,
    ApplySerializer,
    InterviewSerializer,
    JobDetailSerializer,
    JobListSerializer,
    ScheduleInterviewSerializer,
)


def request_metadata(request) -> dict:
    """Request context stored with tracking events."""
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    ip = forwarded.split(",")[0].strip() if forwarded else request.META.get("REMOTE_ADDR")
    meta = {
        "ip": ip,
        "user_agent": request.META.get("HTTP_USER_AGENT", "")[:255],
    }
    source = request.data.get("source") if hasattr(request.data, "get") else None
    if isinstance(source, str) and source:
        meta["source"] = source[:32]
    return meta


class JobListView(generics.ListAPIView):
    """
    GET /api/jobs/ - active, published jobs.

    Optional filter: ?company=<company public id>
    """

    serializer_class = JobListSerializer
    permission_classes = [permissions.AllowAny]

    def get_queryset(self):
        qs = Job.objects.filter(is_active=True, status=Job.Status.PUBLISHED).select_related("company")
        company = self.request.query_params.get("company")
        if company:
            qs = qs.filter(company__public_id=parse_public_id(company, "company"))
        return qs


class JobDetailView(generics.RetrieveAPIView):
    """GET /api/jobs/<public_id>/ - job with its all-time counters."""

    serializer_class = JobDetailSerializer
    permission_classes = [permissions.AllowAny]
    lookup_field = "public_id"
    queryset = Job.objects.filter(is_active=True).select_related("company")


class JobViewTrackView(APIView):
    """POST /api/jobs/<public_id>/view/ - count a view and return the job's counters."""

    permission_classes = [permissions.AllowAny]
    throttle_classes = [TrackThrottle]

    def post(self, request, public_id):
        job = get_object_or_404(Job.objects.select_related("company"), public_id=public_id, is_active=True)
        actor = resolve_optional_actor(request)
        result = commands.view_job(actor, job, request_metadata(request))
        return Response(
            {"job_id": str(job.public_id), "counted": result.created, **result.data},
            status=status.HTTP_200_OK,
        )


class JobApplyView(APIView):
    """POST /api/jobs/<public_id>/apply/ - students only."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, public_id):
        actor = resolve_actor(request)
        job = get_object_or_404(Job.objects.select_related("company"), public_id=public_id)
        serializer = ApplySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = commands.submit_application(actor, job, **serializer.validated_data)
        return Response(
            {
                "application": ApplicationSerializer(result.data).data,
                "counts": job_counts(job),
            },
            status=status.HTTP_201_CREATED,
        )


class JobSaveView(APIView):
    """POST /api/jobs/<public_id>/save/ - bookmark a job (idempotent)."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, public_id):
        actor = resolve_actor(request)
        job = get_object_or_404(Job.objects.select_related("company"), public_id=public_id, is_active=True)
        result = commands.save_job(actor, job)
        return Response(
            {"job_id": str(job.public_id), "saved": True, "counts": job_counts(job)},
            status=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK,
        )


class ScheduleInterviewView(APIView):
    """POST /api/jobs/applications/<public_id>/interview/ - hiring company staff."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, public_id):
        actor = resolve_actor(request)
        application = get_object_or_404(
            Application.objects.select_related("job", "job__company"),
            public_id=public_id,
        )
        serializer = ScheduleInterviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = commands.schedule_interview(actor, application, **serializer.validated_data)
        return Response(
            {
                "interview": InterviewSerializer(result.data).data,
                "counts": job_counts(application.job),
            },
            status=status.HTTP_201_CREATED,
        )


class MyApplicationsView(generics.ListAPIView):
    """GET /api/jobs/applications/mine/ - the student's own applications."""

    serializer_class = ApplicationSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        actor = resolve_actor(self.request)
        return Application.objects.filter(student=actor.user).select_related("job", "job__company")


class CompanyViewTrackView(APIView):
    """POST /api/companies/<public_id>/view/ - count a company profile view."""

    permission_classes = [permissions.AllowAny]
    throttle_classes = [TrackThrottle]

    def post(self, request, public_id):
        company = get_object_or_404(Company, public_id=public_id, is_active=True)
        actor = resolve_optional_actor(request)
        result = commands.view_company(actor, company, request_metadata(request))
        return Response(
            {"company_id": str(company.public_id), "counted": result.created, **result.data},
            status=status.HTTP_200_OK,
        )
