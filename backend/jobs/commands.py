# jobs/commands.py
"""
Command layer for job-board actions.

Each command changes the subject (when there is something to change)
and records the matching analytics event through record_event(), which
also bumps the aggregates. Views call these; they never write events or
aggregates themselves.

Anonymous visitors are passed as actor=None (views only).
"""

import logging
from datetime import datetime
from typing import Optional

from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied

from accounts.authz import ActorContext
from accounts.models import Company
from analytics.periods import ALL_TIME
from analytics.reconciler import current_value
from events.exceptions import ConflictError, ValidationError
from events.recorder import dedup_key_for, record_event
from events.types import (
    ApplicationSubmitData,
    CompanyViewData,
    InterviewScheduledData,
    JobSaveData,
    JobViewData,
    Metrics,
)
from jobs.models import Application, Interview, Job, SavedJob

logger = logging.getLogger(__name__)


class CommandResult:
    """
    Wrapper for command results.

    Usage:
        result = view_job(actor, job)
        result.data    # the subject (or counts, for views)
        result.event   # the recorded Event
    """

    def __init__(self, data=None, event=None, created: bool = True):
        self.data = data
        self.event = event
        self.created = created

    @classmethod
    def ok(cls, data=None, event=None, created: bool = True):
        return cls(data=data, event=event, created=created)


def _user_id(actor: Optional[ActorContext]) -> Optional[str]:
    return str(actor.user.public_id) if actor is not None else None


def job_counts(job: Job) -> dict:
    """All-time counters for a job, as currently stored."""
    subject_id = str(job.public_id)
    return {
        "view_count": current_value(Metrics.JOB_VIEW, subject_id, ALL_TIME),
        "applications_count": current_value(Metrics.APPLICATION_SUBMIT, subject_id, ALL_TIME),
        "interviews_count": current_value(Metrics.INTERVIEW_SCHEDULED, subject_id, ALL_TIME),
        "saves_count": current_value(Metrics.JOB_SAVE, subject_id, ALL_TIME),
    }


# =============================================================================
# Views
# =============================================================================

def view_job(actor: Optional[ActorContext], job: Job, request_meta: Optional[dict] = None,
             occurred_at: Optional[datetime] = None) -> CommandResult:
    """
    Record a job view.

    A signed-in viewer counts once per job per UTC day; anonymous views
    always count.

    Returns:
        CommandResult with data = job_counts() read after the write
    """
    if not job.is_active:
        raise ValidationError("Job is not active.", details={"job_id": str(job.public_id)})

    occurred_at = occurred_at or timezone.now()
    subject_id = str(job.public_id)
    viewer_id = _user_id(actor)
    event = record_event(
        Metrics.JOB_VIEW,
        subject_id,
        company=job.company,
        actor=actor.user if actor else None,
        data=JobViewData(
            job_public_id=subject_id,
            viewer_id=viewer_id,
            source=(request_meta or {}).get("source", "web"),
        ),
        metadata=request_meta,
        occurred_at=occurred_at,
        dedup_key=dedup_key_for(Metrics.JOB_VIEW, subject_id, viewer_id, occurred_at),
    )
    return CommandResult.ok(job_counts(job), event=event, created=event.created)


def view_company(actor: Optional[ActorContext], company: Company, request_meta: Optional[dict] = None,
                 occurred_at: Optional[datetime] = None) -> CommandResult:
    """Record a company profile view. Returns the all-time view count."""
    if not company.is_active:
        raise ValidationError("Company is not active.", details={"company_id": str(company.public_id)})

    occurred_at = occurred_at or timezone.now()
    subject_id = str(company.public_id)
    viewer_id = _user_id(actor)
    event = record_event(
        Metrics.COMPANY_VIEW,
        subject_id,
        company=company,
        actor=actor.user if actor else None,
        data=CompanyViewData(company_public_id=subject_id, viewer_id=viewer_id),
        metadata=request_meta,
        occurred_at=occurred_at,
        dedup_key=dedup_key_for(Metrics.COMPANY_VIEW, subject_id, viewer_id, occurred_at),
    )
    views = current_value(Metrics.COMPANY_VIEW, subject_id, ALL_TIME)
    return CommandResult.ok({"view_count": views}, event=event, created=event.created)


# =============================================================================
# Applications & interviews
# =============================================================================

@transaction.atomic
def submit_application(actor: ActorContext, job: Job, cover_letter: str = "") -> CommandResult:
    """
    Apply to a job as a student.

    Raises:
        PermissionDenied: actor is not a student
        ValidationError: job is closed or inactive
        ConflictError: actor already applied to this job
    """
    if not actor.is_student:
        raise PermissionDenied("Only students can apply to jobs.")

    if not job.accepts_applications:
        raise ValidationError("Job is not accepting applications.", details={"job_id": str(job.public_id)})

    if Application.objects.filter(job=job, student=actor.user).exists():
        raise ConflictError("You have already applied to this job.", details={"job_id": str(job.public_id)})

    try:
        with transaction.atomic():
            application = Application.objects.create(job=job, student=actor.user, cover_letter=cover_letter)
    except IntegrityError as exc:
        raise ConflictError(
            "You have already applied to this job.",
            details={"job_id": str(job.public_id)},
        ) from exc

    subject_id = str(job.public_id)
    event = record_event(
        Metrics.APPLICATION_SUBMIT,
        subject_id,
        company=job.company,
        actor=actor.user,
        data=ApplicationSubmitData(
            job_public_id=subject_id,
            application_public_id=str(application.public_id),
            student_id=str(actor.user.public_id),
        ),
        dedup_key=dedup_key_for(Metrics.APPLICATION_SUBMIT, subject_id, natural_id=application.public_id),
        strict=True,
    )

    logger.info(
        "Application submitted",
        extra={"job_id": subject_id, "application_id": str(application.public_id)},
    )
    return CommandResult.ok(application, event=event)


@transaction.atomic
def schedule_interview(actor: ActorContext, application: Application, scheduled_at: datetime,
                       location: str = "") -> CommandResult:
    """
    Schedule an interview for an application. Company staff only.

    Moves the application to INTERVIEW.
    """
    job = application.job
    if not actor.can_manage(job.company):
        raise PermissionDenied("Only the hiring company can schedule interviews.")

    if application.status in (Application.Status.REJECTED, Application.Status.HIRED):
        raise ValidationError(
            f"Cannot schedule an interview for a {application.get_status_display().lower()} application.",
            details={"application_id": str(application.public_id), "status": application.status},
        )

    interview = Interview.objects.create(
        application=application,
        scheduled_at=scheduled_at,
        location=location,
        scheduled_by=actor.user,
    )
    application.status = Application.Status.INTERVIEW
    application.save(update_fields=["status", "updated_at"])

    subject_id = str(job.public_id)
    event = record_event(
        Metrics.INTERVIEW_SCHEDULED,
        subject_id,
        company=job.company,
        actor=actor.user,
        data=InterviewScheduledData(
            job_public_id=subject_id,
            application_public_id=str(application.public_id),
            interview_public_id=str(interview.public_id),
            scheduled_at=scheduled_at.isoformat(),
        ),
        dedup_key=dedup_key_for(Metrics.INTERVIEW_SCHEDULED, subject_id, natural_id=interview.public_id),
        strict=True,
    )
    return CommandResult.ok(interview, event=event)


# =============================================================================
# Saved jobs
# =============================================================================

@transaction.atomic
def save_job(actor: ActorContext, job: Job) -> CommandResult:
    """
    Bookmark a job. Saving an already-saved job changes nothing.
    """
    saved, created = SavedJob.objects.get_or_create(user=actor.user, job=job)
    if not created:
        return CommandResult.ok(saved, created=False)

    subject_id = str(job.public_id)
    user_id = str(actor.user.public_id)
    event = record_event(
        Metrics.JOB_SAVE,
        subject_id,
        company=job.company,
        actor=actor.user,
        data=JobSaveData(job_public_id=subject_id, user_id=user_id),
        dedup_key=dedup_key_for(Metrics.JOB_SAVE, subject_id, user_id),
    )
    return CommandResult.ok(saved, event=event, created=event.created)
