"""Calendar buckets: day, ISO-8601 week, month.

All calendar arithmetic is done on UTC dates. ``assign_bucket`` and
``enumerate_buckets`` share ``bucket_for`` so folding can never produce a
key the enumeration does not contain.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from enum import StrEnum

from clinicflow.errors import RangeTooLargeError, ValidationError

__all__ = [
    "Granularity",
    "PeriodBucket",
    "assign_bucket",
    "bucket_for",
    "day_of",
    "enumerate_buckets",
    "parse_date",
    "parse_granularity",
    "previous_range",
    "range_bounds",
    "validate_range",
]

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)  # fmt: skip

_ONE_DAY = timedelta(days=1)


class Granularity(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class PeriodBucket:
    """Calendar window with inclusive boundaries."""

    key: str
    start_date: date
    end_date: date
    label: str

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


def parse_granularity(value: str | None, *, default: Granularity = Granularity.MONTHLY) -> Granularity:
    if value is None or value == "":
        return default
    try:
        return Granularity(value)
    except ValueError:
        raise ValidationError(
            "INVALID_PERIOD", "Invalid period. Must be 'daily', 'weekly', or 'monthly'"
        ) from None


def parse_date(value: str, field: str) -> date:
    """Strict ``YYYY-MM-DD``; impossible dates (2024-02-30) are rejected too."""
    if not _DATE_RE.match(value):
        raise ValidationError(
            "INVALID_DATE_FORMAT",
            f"Invalid {field} format. Use YYYY-MM-DD",
            details={"field": field},
        )
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(
            "INVALID_DATE_FORMAT",
            f"Invalid {field} value",
            details={"field": field},
        ) from None


def validate_range(start: date, end: date, max_days: int) -> None:
    if start > end:
        raise ValidationError(
            "INVALID_DATE_RANGE", "start_date must be before or equal to end_date"
        )
    if (end - start).days > max_days:
        raise RangeTooLargeError(max_days)


def day_of(moment: datetime | date) -> date:
    """UTC calendar date of a timestamp (naive timestamps are taken as UTC)."""
    if isinstance(moment, datetime):
        if moment.tzinfo is not None:
            moment = moment.astimezone(UTC)
        return moment.date()
    return moment


def bucket_for(granularity: Granularity, day: date) -> PeriodBucket:
    if granularity is Granularity.DAILY:
        key = day.isoformat()
        return PeriodBucket(key=key, start_date=day, end_date=day, label=key)
    if granularity is Granularity.WEEKLY:
        iso_year, iso_week, iso_weekday = day.isocalendar()
        monday = day - timedelta(days=iso_weekday - 1)
        return PeriodBucket(
            key=f"{iso_year}-W{iso_week:02d}",
            start_date=monday,
            end_date=monday + timedelta(days=6),
            label=f"Week of {monday.isoformat()}",
        )
    first = day.replace(day=1)
    last = first.replace(day=calendar.monthrange(first.year, first.month)[1])
    return PeriodBucket(
        key=f"{first.year}-{first.month:02d}",
        start_date=first,
        end_date=last,
        label=f"{MONTH_NAMES[first.month - 1]} {first.year}",
    )


def assign_bucket(granularity: Granularity, moment: datetime | date) -> str:
    return bucket_for(granularity, day_of(moment)).key


def enumerate_buckets(granularity: Granularity, start: date, end: date) -> list[PeriodBucket]:
    """Every bucket touching ``[start, end]``, in order, empty ones included.

    Edge buckets keep their full calendar boundaries (a week starting before
    *start* still spans Monday..Sunday).
    """
    if start > end:
        raise ValidationError(
            "INVALID_DATE_RANGE", "start_date must be before or equal to end_date"
        )
    buckets: list[PeriodBucket] = []
    cursor = start
    while cursor <= end:
        bucket = bucket_for(granularity, cursor)
        buckets.append(bucket)
        cursor = bucket.end_date + _ONE_DAY
    return buckets


def range_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    """Half-open UTC timestamp window covering the whole of ``[start, end]``."""
    return (
        datetime.combine(start, time.min, tzinfo=UTC),
        datetime.combine(end + _ONE_DAY, time.min, tzinfo=UTC),
    )


def previous_range(start: date, end: date) -> tuple[date, date]:
    """The window of equal length ending the day before *start*."""
    length = (end - start).days + 1
    return start - timedelta(days=length), start - _ONE_DAY
