"""
Aggregate periods.

Every aggregate is keyed by a period: ``"all"`` for the all-time total,
or an ISO day (``"2024-05-01"``) for the UTC daily bucket.
"""
from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from typing import List, Optional, Tuple

from django.utils import timezone

from events.exceptions import ValidationError

ALL_TIME = "all"


def day_period(value) -> str:
    """UTC day bucket for a datetime (or the day itself for a date)."""
    if isinstance(value, datetime):
        if timezone.is_naive(value):
            value = timezone.make_aware(value, dt_timezone.utc)
        value = value.astimezone(dt_timezone.utc).date()
    return value.isoformat()


def periods_for(occurred_at: datetime) -> List[str]:
    """Periods an event occurring at ``occurred_at`` contributes to."""
    return [ALL_TIME, day_period(occurred_at)]


def parse_period(period: str) -> Optional[date]:
    """Return the day of a daily period, None for all-time."""
    if period == ALL_TIME:
        return None
    try:
        return date.fromisoformat(period)
    except (TypeError, ValueError):
        raise ValidationError(
            f"Invalid period '{period}'. Use 'all' or YYYY-MM-DD.",
            details={"period": period},
        )


def period_bounds(period: str) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Half-open [start, end) UTC interval covered by a period; (None, None) for all-time."""
    day = parse_period(period)
    if day is None:
        return None, None
    start = datetime.combine(day, time.min, tzinfo=dt_timezone.utc)
    return start, start + timedelta(days=1)


def day_range(start: date, end: date) -> List[str]:
    """Daily periods from start to end, inclusive."""
    days = []
    current = start
    while current <= end:
        days.append(current.isoformat())
        current += timedelta(days=1)
    return days


def window(days: int, *, today: Optional[date] = None) -> Tuple[date, date]:
    """The last ``days`` UTC days, ending today."""
    today = today or timezone.now().astimezone(dt_timezone.utc).date()
    return today - timedelta(days=days - 1), today
