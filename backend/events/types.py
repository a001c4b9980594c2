# events/types.py
"""
Metric definitions for the recruitment analytics event log.

This module defines THE CANONICAL SCHEMA for every event payload.
Each metric has:
- A name (stored in Event.metric, and the aggregate key)
- The type of subject it counts (job or company)
- A payload dataclass, enforced when the event is recorded

The set of metrics is closed: recording anything not listed in
METRIC_DATA_CLASSES is a validation error.

IMPORTANT: Payloads are a STABLE API
============================================
- Adding optional fields with defaults is safe
- Removing, renaming or retyping a field needs a schema_version bump
"""

from dataclasses import MISSING, asdict, dataclass, fields as dataclass_fields
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union, get_args, get_origin, get_type_hints
from uuid import UUID

from events.exceptions import ValidationError


class InvalidEventPayload(ValidationError):
    """
    Raised when an event payload fails validation.

    ``details["errors"]`` lists every problem found, not just the first.
    """

    def __init__(self, metric: str, errors: List[str]):
        self.metric = metric
        self.errors = errors
        error_list = "\n  - ".join(errors)
        super().__init__(
            f"Invalid payload for metric '{metric}':\n  - {error_list}",
            details={"metric": metric, "errors": errors},
        )


# =============================================================================
# Metrics
# =============================================================================

class Metrics:
    """
    Registry of all metric names.

    Naming convention: {subject}_{action}
    """

    JOB_VIEW = "job_view"
    APPLICATION_SUBMIT = "application_submit"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    JOB_SAVE = "job_save"
    COMPANY_VIEW = "company_view"

    @classmethod
    def all(cls) -> List[str]:
        return list(METRIC_DATA_CLASSES)

    @classmethod
    def choices(cls):
        return [(name, name.replace("_", " ").title()) for name in METRIC_DATA_CLASSES]


class SubjectTypes:
    JOB = "job"
    COMPANY = "company"


# =============================================================================
# Payload classes
# =============================================================================

@dataclass
class BaseEventData:
    """Base class for all event payloads."""

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON storage."""
        result = {}
        for key, value in asdict(self).items():
            if isinstance(value, (date, datetime)):
                result[key] = value.isoformat()
            elif isinstance(value, UUID):
                result[key] = str(value)
            else:
                result[key] = value
        return result


@dataclass
class JobViewData(BaseEventData):
    """A job detail page was viewed. Anonymous views have no viewer."""
    job_public_id: str
    viewer_id: Optional[str] = None
    source: str = "web"


@dataclass
class ApplicationSubmitData(BaseEventData):
    """A student applied to a job."""
    job_public_id: str
    application_public_id: str
    student_id: str


@dataclass
class InterviewScheduledData(BaseEventData):
    """Company staff scheduled an interview for an application."""
    job_public_id: str
    application_public_id: str
    interview_public_id: str
    scheduled_at: str


@dataclass
class JobSaveData(BaseEventData):
    """A user bookmarked a job."""
    job_public_id: str
    user_id: str


@dataclass
class CompanyViewData(BaseEventData):
    """A company profile page was viewed."""
    company_public_id: str
    viewer_id: Optional[str] = None


METRIC_DATA_CLASSES = {
    Metrics.JOB_VIEW: JobViewData,
    Metrics.APPLICATION_SUBMIT: ApplicationSubmitData,
    Metrics.INTERVIEW_SCHEDULED: InterviewScheduledData,
    Metrics.JOB_SAVE: JobSaveData,
    Metrics.COMPANY_VIEW: CompanyViewData,
}

METRIC_SUBJECT_TYPES = {
    Metrics.JOB_VIEW: SubjectTypes.JOB,
    Metrics.APPLICATION_SUBMIT: SubjectTypes.JOB,
    Metrics.INTERVIEW_SCHEDULED: SubjectTypes.JOB,
    Metrics.JOB_SAVE: SubjectTypes.JOB,
    Metrics.COMPANY_VIEW: SubjectTypes.COMPANY,
}

# Payload field that must repeat the subject id.
METRIC_SUBJECT_FIELDS = {
    Metrics.JOB_VIEW: "job_public_id",
    Metrics.APPLICATION_SUBMIT: "job_public_id",
    Metrics.INTERVIEW_SCHEDULED: "job_public_id",
    Metrics.JOB_SAVE: "job_public_id",
    Metrics.COMPANY_VIEW: "company_public_id",
}

_DATETIME_FIELDS = {"scheduled_at"}


# =============================================================================
# Validation
# =============================================================================

def _is_optional_type(type_hint) -> bool:
    """Check if a type hint is Optional[X] (i.e., Union[X, None])."""
    return get_origin(type_hint) is Union and type(None) in get_args(type_hint)


def _get_inner_type(type_hint):
    """Get the inner type from Optional[X]."""
    if get_origin(type_hint) is Union:
        non_none = [a for a in get_args(type_hint) if a is not type(None)]
        if len(non_none) == 1:
            return non_none[0]
    return type_hint


def validate_metric(metric: str) -> None:
    if metric not in METRIC_DATA_CLASSES:
        raise ValidationError(
            f"Unknown metric '{metric}'.",
            details={"metric": metric, "allowed": sorted(METRIC_DATA_CLASSES)},
        )


def parse_public_id(value, field: str) -> UUID:
    """Parse a client-supplied public id, raising ValidationError when it is not a UUID."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(f"'{field}' must be a UUID.", details={field: value})


def validate_event_payload(metric: str, data: Dict[str, Any]) -> None:
    """
    Validate that a data dict matches the schema for a metric.

    Checks:
    1. Required fields are present (fields without defaults)
    2. No unexpected fields are provided (strict schema)
    3. Field types are correct (str/int/bool, Optional allowed to be None)
    4. Datetime fields hold ISO 8601 strings

    Raises:
        ValidationError: unknown metric
        InvalidEventPayload: payload does not match the schema
    """
    validate_metric(metric)

    if not isinstance(data, dict):
        raise InvalidEventPayload(metric, [f"Payload must be an object, got {type(data).__name__}"])

    data_class = METRIC_DATA_CLASSES[metric]
    dc_fields = {f.name: f for f in dataclass_fields(data_class)}
    type_hints = get_type_hints(data_class)
    errors = []

    for name, info in dc_fields.items():
        required = info.default is MISSING and info.default_factory is MISSING
        if required and name not in data:
            errors.append(f"Missing required field: '{name}'")

    unexpected = set(data) - set(dc_fields)
    if unexpected:
        errors.append(
            f"Unexpected fields: {sorted(unexpected)}. "
            f"Expected: {sorted(dc_fields)}"
        )

    for name, value in data.items():
        type_hint = type_hints.get(name)
        if type_hint is None:
            continue

        if value is None:
            if not _is_optional_type(type_hint):
                errors.append(f"Field '{name}' cannot be None")
            continue

        check_type = _get_inner_type(type_hint)
        if check_type is str and not isinstance(value, str):
            errors.append(f"Field '{name}' must be a string, got {type(value).__name__}")
        elif check_type is int and (not isinstance(value, int) or isinstance(value, bool)):
            errors.append(f"Field '{name}' must be an int, got {type(value).__name__}")
        elif check_type is bool and not isinstance(value, bool):
            errors.append(f"Field '{name}' must be a bool, got {type(value).__name__}")
        elif check_type is str and not value.strip():
            errors.append(f"Field '{name}' cannot be blank")

        if name in _DATETIME_FIELDS and isinstance(value, str):
            try:
                datetime.fromisoformat(value)
            except ValueError:
                errors.append(f"Field '{name}' must be an ISO datetime string, got {value!r}")

    if errors:
        raise InvalidEventPayload(metric, errors)
