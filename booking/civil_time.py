"""Civil (Bogotá wall-clock) time handling for charger bookings.

Every instant the booking core stores or compares is timezone-aware. Civil
inputs ("YYYY-MM-DD", "HH:MM") are resolved against CIVIL_TZ explicitly, so
the result never depends on the machine's local timezone.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone

CIVIL_TZ_NAME = "America/Bogota"
# Fixed UTC-5. The tz database carries historic DST and LMT offsets for this
# zone that the booking calendar does not observe.
CIVIL_TZ = timezone(timedelta(hours=-5), CIVIL_TZ_NAME)

# The latest date whose 24-hour slot, shifted to UTC, still fits in a datetime.
LATEST_CIVIL_DATE = date(9999, 12, 29)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")
_CLOCK_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def parse_civil_date(value: str | date) -> date:
    if isinstance(value, datetime):
        return civil_date_of(value)
    if isinstance(value, date):
        day = value
    elif not isinstance(value, str) or not _DATE_RE.match(value):
        raise ValueError(f"Invalid date {value!r}; expected YYYY-MM-DD.")
    else:
        try:
            day = date.fromisoformat(value)
        except ValueError as exc:
            raise ValueError(f"Invalid calendar date {value!r}.") from exc
        if day > LATEST_CIVIL_DATE:
            raise ValueError(f"Date {value!r} is outside the supported calendar.")
    return day


def parse_clock(value: str) -> tuple[int, int]:
    match = _CLOCK_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid time {value!r}; expected HH:MM (24-hour).")
    return int(match.group(1)), int(match.group(2))


def format_clock(hour: int, minute: int) -> str:
    return f"{hour:02d}:{minute:02d}"


def format_time_slot(start_clock: str, end_clock: str) -> str:
    """Render a zero-padded "HH:MM-HH:MM" slot from two clock strings."""
    return f"{format_clock(*parse_clock(start_clock))}-{format_clock(*parse_clock(end_clock))}"


def civil_datetime(civil_date: str | date, hour: int, minute: int = 0) -> datetime:
    """Instant of the given wall-clock time on civil_date in CIVIL_TZ."""
    day = parse_civil_date(civil_date)
    if not 0 <= hour <= 23 or not 0 <= minute <= 59:
        raise ValueError(f"Invalid wall-clock time {hour}:{minute}.")
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=CIVIL_TZ)


def next_civil_day(day: date) -> date:
    try:
        return day + timedelta(days=1)
    except OverflowError:
        raise ValueError(f"Date {day.isoformat()} has no following day.") from None


def civil_midnight(civil_date: str | date) -> datetime:
    return civil_datetime(civil_date, 0, 0)


def parse_time_slot_interval(booking_date: str | date | datetime, slot: str) -> tuple[datetime, datetime]:
    """Split "HH:MM-HH:MM" into (start, end) instants on booking_date.

    When the end clock is not after the start clock the slot crosses
    midnight and the end lands on the following civil day.
    """
    start_clock, sep, end_clock = slot.partition("-")
    if not sep:
        raise ValueError(f"Invalid time slot {slot!r}; expected HH:MM-HH:MM.")

    day = parse_civil_date(booking_date)
    start = civil_datetime(day, *parse_clock(start_clock))
    end = civil_datetime(day, *parse_clock(end_clock))
    if end <= start:
        end = civil_datetime(next_civil_day(day), *parse_clock(end_clock))
    return start, end


def ensure_aware(instant: datetime) -> datetime:
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise ValueError("Naive datetime is ambiguous; attach a timezone first.")
    return instant


def to_civil(instant: datetime) -> datetime:
    return ensure_aware(instant).astimezone(CIVIL_TZ)


def to_utc(instant: datetime) -> datetime:
    return ensure_aware(instant).astimezone(timezone.utc)


def to_civil_iso(instant: datetime) -> str:
    """ISO-8601 rendering in CIVIL_TZ, e.g. 2026-01-09T20:00:00.000-05:00."""
    return to_civil(instant).isoformat(timespec="milliseconds")


def civil_date_of(instant: datetime) -> date:
    return to_civil(instant).date()


def civil_clock_of(instant: datetime) -> str:
    local = to_civil(instant)
    return format_clock(local.hour, local.minute)


def day_range(civil_date: str | date) -> tuple[datetime, datetime]:
    """Half-open [midnight, next midnight) of a civil date."""
    day = parse_civil_date(civil_date)
    return civil_midnight(day), civil_midnight(next_civil_day(day))


def month_range(month: str) -> tuple[datetime, datetime]:
    match = _MONTH_RE.match(month) if isinstance(month, str) else None
    if not match:
        raise ValueError(f"Invalid month {month!r}; expected YYYY-MM.")
    year, month_number = int(match.group(1)), int(match.group(2))
    if not 1 <= month_number <= 12:
        raise ValueError(f"Invalid month {month!r}.")

    first = date(year, month_number, 1)
    following = date(year + 1, 1, 1) if month_number == 12 else date(year, month_number + 1, 1)
    return civil_midnight(first), civil_midnight(following)


def duration_minutes(start: datetime, end: datetime) -> int:
    return int((ensure_aware(end) - ensure_aware(start)).total_seconds() // 60)
