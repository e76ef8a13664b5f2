"""
Plain data types shared by the slot generator and the overlap checker.

Weekdays follow the stored convention: 0=Sunday through 6=Saturday, with
DATE_SPECIFIC_DAY marking windows that apply to a single calendar date.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional


DATE_SPECIFIC_DAY = -1

WEEKDAY_NAMES = (
    'Sunday',
    'Monday',
    'Tuesday',
    'Wednesday',
    'Thursday',
    'Friday',
    'Saturday',
)


def day_of_week(value: date) -> int:
    """Weekday of a date in the 0=Sunday convention."""
    return (value.weekday() + 1) % 7


@dataclass(frozen=True)
class AvailabilityWindow:
    day_of_week: int
    start_time: time
    end_time: time
    specific_date: Optional[date] = None

    @property
    def is_date_specific(self) -> bool:
        return self.specific_date is not None


@dataclass(frozen=True)
class BookedInterval:
    start_time: datetime
    end_time: datetime
    status: str = 'confirmed'


@dataclass(frozen=True)
class Slot:
    start: datetime
    end: datetime
