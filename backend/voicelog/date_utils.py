"""Date snapshot used as the primary key of every meeting record."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class DateData:
    """All date representations of a single instant.

    Built in one go by ``derive_current`` so the date, its components and the
    weekday can never disagree.
    """

    recording_date: str  # YYYY-MM-DD
    recording_date_time: str  # ISO 8601 with offset
    recording_date_display: str  # "Friday, July 25, 2025"
    recording_time: str  # "03:04:05 PM"
    year: int
    month: int
    day: int
    day_of_week: str
    instant: datetime

    @property
    def calendar_date(self) -> date:
        return self.instant.date()


def resolve_timezone(name: Optional[str]) -> tzinfo:
    if not name or name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def as_aware(value: datetime, tz: tzinfo = timezone.utc) -> datetime:
    """Attach ``tz`` to naive datetimes (SQLite drops offsets on the way back)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value


def format_display_date(value: date) -> str:
    return f"{value:%A}, {value:%B} {value.day}, {value.year}"


def format_display_time(value: datetime) -> str:
    return value.strftime("%I:%M:%S %p")


def format_database_date(value: date) -> str:
    return value.isoformat()


def derive_current(tz: tzinfo = timezone.utc, now: Optional[datetime] = None) -> DateData:
    """
    Snapshot the current instant into every representation a record needs.

    Call once per record creation and reuse the result for all fields.

    Args:
        tz: Timezone the calendar date is taken in
        now: Instant to use instead of the clock (tests)

    Returns:
        DateData for the instant
    """
    instant = (now or datetime.now(tz)).astimezone(tz)
    day = instant.date()
    return DateData(
        recording_date=format_database_date(day),
        recording_date_time=instant.isoformat(),
        recording_date_display=format_display_date(day),
        recording_time=format_display_time(instant),
        year=instant.year,
        month=instant.month,
        day=instant.day,
        day_of_week=f"{instant:%A}",
        instant=instant,
    )
