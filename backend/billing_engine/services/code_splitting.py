"""Split time-based billing codes across locations of service.

Codes billed per unit of time (multiple_unit_indicator "U" with a
minutes-based billing_unit_type) are split at the boundaries of the
physician's locations of service, so each segment is billed with the
right location code and its own unit count.
"""

import logging
import math
import re
from dataclasses import dataclass, replace
from datetime import date

from billing_engine.services.date_utils import add_days, is_weekend_or_holiday

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 1440
DEFAULT_LOCATION_CODE = "1"  # Office

# Billing unit type marker -> minutes per unit, most specific first
UNIT_MINUTES: list[tuple[str, int]] = [
    ("FIFTEEN_MINUTES", 15),
    ("THIRTY_MINUTES", 30),
    ("FIVE_MINUTES", 5),
    ("MINUTES", 1),
]

_TIME_PATTERN = re.compile(r"(\d{1,2}):(\d{2})")


@dataclass(frozen=True)
class LocationOfService:
    """A physician's location of service with its hours (HH:MM)."""

    code: str
    name: str
    start_time: str | None = None
    end_time: str | None = None
    holiday_start_time: str | None = None
    holiday_end_time: str | None = None


@dataclass(frozen=True)
class CodeToSplit:
    """A time-based billing code entry on a service."""

    code_id: int
    code: str = ""
    title: str = ""
    multiple_unit_indicator: str | None = None
    billing_unit_type: str | None = None
    service_start_time: str | None = None
    service_end_time: str | None = None
    number_of_units: int | None = None
    service_date: date | None = None
    service_end_date: date | None = None
    location_of_service: str | None = None
    bilateral_indicator: str | None = None
    special_circumstances: str | None = None


@dataclass(frozen=True)
class TimeRange:
    start_minutes: int
    end_minutes: int
    location_code: str
    units: int

    @property
    def minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    @property
    def is_next_day(self) -> bool:
        return self.start_minutes >= MINUTES_PER_DAY


def time_to_minutes(value: str) -> int:
    """Minutes since midnight of an ``HH:MM`` (or ``HH:MM:SS``/ISO) time."""
    match = _TIME_PATTERN.search(value)
    if match is None:
        raise ValueError(f"Invalid time: {value!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


def minutes_to_time(minutes: int) -> str:
    """``HH:MM`` for minutes since midnight, wrapping past midnight."""
    normalized = minutes % MINUTES_PER_DAY
    return f"{normalized // 60:02d}:{normalized % 60:02d}"


def calculate_units(minutes: int, billing_unit_type: str | None) -> int:
    """Units for a duration, rounded up to whole units."""
    if not billing_unit_type:
        return minutes
    for marker, unit_minutes in UNIT_MINUTES:
        if marker in billing_unit_type:
            return math.ceil(minutes / unit_minutes)
    return minutes


def unit_label(billing_unit_type: str | None) -> str:
    for marker, unit_minutes in UNIT_MINUTES:
        if unit_minutes > 1 and billing_unit_type and marker in billing_unit_type:
            return f"units ({unit_minutes}-min)"
    return "minutes"


def _location_windows(
    locations: list[LocationOfService],
    weekend_or_holiday: bool,
    crosses_midnight: bool,
) -> list[tuple[int, int, str]]:
    """(start, end, code) minute windows, sorted, with next-day copies."""
    windows = []
    for location in locations:
        if weekend_or_holiday:
            start, end = location.holiday_start_time, location.holiday_end_time
        else:
            start, end = location.start_time, location.end_time
        if not start or not end:
            continue
        start_minutes = time_to_minutes(start)
        end_minutes = time_to_minutes(end)
        if end_minutes <= start_minutes:
            end_minutes += MINUTES_PER_DAY
        windows.append((start_minutes, end_minutes, location.code))

    if crosses_midnight:
        # Morning windows also apply to the early hours of the next day
        windows += [
            (start + MINUTES_PER_DAY, end + MINUTES_PER_DAY, code)
            for start, end, code in windows
            if start < MINUTES_PER_DAY // 2
        ]

    return sorted(windows)


def create_time_ranges(
    start_time: str,
    end_time: str,
    locations: list[LocationOfService],
    billing_unit_type: str | None = None,
    weekend_or_holiday: bool = False,
) -> list[TimeRange]:
    """Split a service time range at location-of-service boundaries.

    Gaps not covered by any location are billed at the default office
    location. A stop time at or before the start time ends on the next day.
    """
    start = time_to_minutes(start_time)
    end = time_to_minutes(end_time)
    if end <= start:
        end += MINUTES_PER_DAY

    windows = _location_windows(locations, weekend_or_holiday, end > MINUTES_PER_DAY)
    if not windows:
        minutes = end - start
        units = calculate_units(minutes, billing_unit_type)
        return [TimeRange(start, end, DEFAULT_LOCATION_CODE, units)]

    ranges = []
    current = start
    while current < end:
        window = next((w for w in windows if w[0] <= current < w[1]), None)
        if window is not None:
            segment_end = min(end, window[1])
            code = window[2]
        else:
            following = next((w for w in windows if w[0] > current), None)
            segment_end = min(end, following[0]) if following else end
            code = DEFAULT_LOCATION_CODE

        ranges.append(
            TimeRange(
                start_minutes=current,
                end_minutes=segment_end,
                location_code=code,
                units=calculate_units(segment_end - current, billing_unit_type),
            )
        )
        current = segment_end

    return ranges


def should_split(code: CodeToSplit) -> bool:
    """Whether a code is billed per unit of time with a time range given."""
    return (
        code.multiple_unit_indicator == "U"
        and bool(code.billing_unit_type)
        and "MINUTES" in code.billing_unit_type
        and bool(code.service_start_time)
        and bool(code.service_end_time)
    )


def split_billing_code_by_time_and_location(
    code: CodeToSplit,
    locations: list[LocationOfService],
    holidays: list[date] | None = None,
) -> list[CodeToSplit]:
    """Split a time-based code into one entry per location segment.

    Codes that are not time-based, or have no start/stop time, are
    returned unchanged as a single entry. Segments after midnight move
    to the next service date.
    """
    if not should_split(code):
        return [code]

    weekend_or_holiday = code.service_date is not None and is_weekend_or_holiday(
        code.service_date, holidays or []
    )
    ranges = create_time_ranges(
        code.service_start_time,
        code.service_end_time,
        locations,
        code.billing_unit_type,
        weekend_or_holiday,
    )

    result = []
    for time_range in ranges:
        service_date = code.service_date
        service_end_date = code.service_end_date
        if time_range.is_next_day and service_date is not None:
            service_date = add_days(service_date, 1)
            if service_end_date is not None:
                service_end_date = add_days(service_end_date, 1)

        result.append(
            replace(
                code,
                service_start_time=minutes_to_time(time_range.start_minutes),
                service_end_time=minutes_to_time(time_range.end_minutes),
                number_of_units=time_range.units,
                location_of_service=time_range.location_code,
                service_date=service_date,
                service_end_date=service_end_date,
            )
        )

    logger.debug(f"Split {code.code or code.code_id} into {len(result)} segments")
    return result


def generate_split_description(
    original: CodeToSplit,
    split_codes: list[CodeToSplit],
    locations: list[LocationOfService],
) -> str:
    """Human-readable summary of a split."""
    if len(split_codes) <= 1:
        return "No split needed. The billing code will be saved as-is."

    names = {location.code: location.name for location in locations}
    title = original.title or original.code or "Billing code"
    label = unit_label(original.billing_unit_type)
    lines = [
        f'The billing code "{title}" will be split into {len(split_codes)} '
        f"separate codes based on your locations of service:",
        "",
    ]
    for index, split in enumerate(split_codes, start=1):
        location_name = names.get(split.location_of_service, f"Location {split.location_of_service}")
        date_info = ""
        if split.service_date and split.service_date != original.service_date:
            date_info = f" [{split.service_date.isoformat()}]"
        lines.append(
            f"{index}. {split.service_start_time} - {split.service_end_time} "
            f"({split.number_of_units} {label}) at {location_name}{date_info}"
        )
    return "\n".join(lines)
