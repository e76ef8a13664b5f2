"""Write-time validation for availability windows and timezone names."""

import re
from datetime import date, time
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from calendlier.scheduling.types import DATE_SPECIFIC_DAY

TIME_OF_DAY_PATTERN = re.compile(r'^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$')


class WindowError(str, Enum):
    INVALID_DAY = 'Day of week must be between 0 (Sunday) and 6 (Saturday).'
    END_NOT_AFTER_START = 'End time must be after start time; windows cannot cross midnight.'
    DATE_SPECIFIC_MISMATCH = 'Date-specific windows must use day of week -1 and carry a date.'


def parse_time_of_day(value: str) -> time:
    match = TIME_OF_DAY_PATTERN.match(value.strip())
    if not match:
        raise ValueError('Invalid time format, expected HH:MM.')
    return time(int(match.group(1)), int(match.group(2)))


def validate_window(
    day_of_week: int,
    start_time: time,
    end_time: time,
    specific_date: Optional[date] = None,
) -> Optional[WindowError]:
    if specific_date is not None or day_of_week == DATE_SPECIFIC_DAY:
        if specific_date is None or day_of_week != DATE_SPECIFIC_DAY:
            return WindowError.DATE_SPECIFIC_MISMATCH
    elif not 0 <= day_of_week <= 6:
        return WindowError.INVALID_DAY

    if start_time >= end_time:
        return WindowError.END_NOT_AFTER_START

    return None


def validate_timezone(name: str) -> str:
    normalized = name.strip()
    if not normalized:
        raise ValueError('Timezone is required.')
    try:
        ZoneInfo(normalized)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f'Unknown timezone: {normalized}') from exc
    return normalized
