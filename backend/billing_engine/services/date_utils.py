"""Date and day-range utilities.

Service dates are calendar dates in the physician's timezone. Rounding
compares whole days, so every "today" is resolved in that timezone
before any arithmetic happens.
"""

import logging
import re
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from billing_engine.core.config import settings

logger = logging.getLogger(__name__)

DateInput = date | datetime | str

# Formats accepted for typed-in dates, tried in order
FLEXIBLE_DATE_FORMATS: list[str] = [
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%Y%m%d",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d %Y",
    "%B %d %Y",
]

_TIME_PATTERN = re.compile(r"(\d{1,2}):(\d{2})")


def get_timezone(tz_name: str | None) -> ZoneInfo:
    """Resolve a timezone name, falling back to the configured default."""
    name = tz_name or settings.default_timezone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {name!r}, using {settings.default_timezone}")
        return ZoneInfo(settings.default_timezone)


def today_in_timezone(tz_name: str | None = None, now: datetime | None = None) -> date:
    """Return the current calendar date in the given timezone.

    Args:
        tz_name: IANA timezone name (defaults to settings.default_timezone).
        now: Reference instant; naive values are taken as UTC.

    Returns:
        The local calendar date.
    """
    tz = get_timezone(tz_name)
    current = now or datetime.now(UTC)
    if current.tzinfo is None:
        current = current.replace(tzinfo=UTC)
    return current.astimezone(tz).date()


def parse_date_in_timezone(value: DateInput, tz_name: str | None = None) -> date:
    """Parse a date-like value into a calendar date in the given timezone.

    Plain dates and ``YYYY-MM-DD`` strings are returned as-is. Aware
    datetimes (including ISO strings with ``Z`` or an offset) are
    converted to the timezone first; naive datetimes are local already.

    Raises:
        ValueError: If the string is not an ISO date or timestamp.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(get_timezone(tz_name)).date()
    if isinstance(value, date):
        return value

    text = value.strip()
    if len(text) == 10:
        return date.fromisoformat(text)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return parse_date_in_timezone(datetime.fromisoformat(text), tz_name)


def parse_flexible_date(text: str | None) -> date | None:
    """Parse a human-entered date in any of the common formats.

    Accepts ISO dates, day-first numeric dates (15/01/2024), compact
    dates (20240115) and month-name dates (15 Jan 2024, January 15, 2024).

    Returns:
        The parsed date, or None when no format matches.
    """
    if not text:
        return None

    cleaned = " ".join(text.replace(",", " ").split())
    for fmt in FLEXIBLE_DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
    return None


def local_date_to_utc(day: date, tz_name: str | None = None) -> datetime:
    """Return local midnight of ``day`` as an aware UTC datetime."""
    local_midnight = datetime.combine(day, time.min, tzinfo=get_timezone(tz_name))
    return local_midnight.astimezone(UTC)


def combine_date_and_time_in_timezone(
    day: DateInput,
    time_text: str | None,
    tz_name: str | None = None,
) -> datetime | None:
    """Combine a local date and an ``HH:MM`` time into an aware UTC datetime.

    Returns:
        The UTC instant, or None when no time was given.
    """
    if not time_text:
        return None
    match = _TIME_PATTERN.search(time_text)
    if match is None:
        raise ValueError(f"Invalid time: {time_text!r}")

    hours, minutes = int(match.group(1)), int(match.group(2))
    local_day = parse_date_in_timezone(day, tz_name)
    local = datetime.combine(local_day, time(hours, minutes), tzinfo=get_timezone(tz_name))
    return local.astimezone(UTC)


def add_days(day: date, days: int) -> date:
    """Shift a date by a number of days."""
    return day + timedelta(days=days)


def days_between(start: date, end: date) -> int:
    """Whole days from start to end (negative when end is earlier)."""
    return (end - start).days


def window_end(start: date, day_range: int) -> date:
    """Inclusive last day of a window of ``day_range`` days starting at ``start``."""
    return add_days(start, max(day_range, 1) - 1)


# ============================================================================
# Payer and display formats
# ============================================================================


def format_ddmmyy(day: date | None) -> str:
    """Format as DDMMYY (payer date of service)."""
    return day.strftime("%d%m%y") if day else ""


def format_mmyy(day: date | None) -> str:
    """Format as MMYY (payer date of birth)."""
    return day.strftime("%m%y") if day else ""


def format_hhmm(moment: datetime | None, tz_name: str | None = None) -> str:
    """Format a UTC instant as local HHMM (payer start/stop time)."""
    if moment is None:
        return ""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(get_timezone(tz_name)).strftime("%H%M")


def format_full_date(day: date | None) -> str:
    """Format as ``DD Mon YYYY`` (e.g. 15 Jan 2024)."""
    return day.strftime("%d %b %Y") if day else ""


# ============================================================================
# Calendar
# ============================================================================


def is_weekend(day: date) -> bool:
    """Check if a date falls on Saturday or Sunday."""
    return day.weekday() >= 5


def is_holiday(day: date, holidays: list[date]) -> bool:
    """Check if a date is one of the provider's holidays."""
    return day in holidays


def is_weekend_or_holiday(day: date, holidays: list[date]) -> bool:
    """Check if a date is billed at weekend/holiday rates."""
    return is_weekend(day) or is_holiday(day, holidays)
