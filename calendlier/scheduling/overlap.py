"""
Booking conflict detection.

Used twice: to filter candidate slots while listing availability, and again
right before a booking is inserted, to reject a slot someone else took in the
meantime. Only confirmed bookings participate.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional, TypeVar

CONFIRMED_STATUS = 'confirmed'

BookingT = TypeVar('BookingT')


class SlotUnavailableError(Exception):
    """Raised when a requested interval collides with a confirmed booking."""

    def __init__(self, message: str = 'This time slot is no longer available.'):
        super().__init__(message)
        self.message = message


def as_utc(value: datetime) -> datetime:
    # Naive values are UTC: SQLite drops the offset on the way back out.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def overlaps(
    candidate_start: datetime,
    candidate_end: datetime,
    existing_start: datetime,
    existing_end: datetime,
) -> bool:
    candidate_start = as_utc(candidate_start)
    candidate_end = as_utc(candidate_end)
    existing_start = as_utc(existing_start)
    existing_end = as_utc(existing_end)

    starts_inside = existing_start <= candidate_start < existing_end
    ends_inside = existing_start < candidate_end <= existing_end
    contains_existing = candidate_start <= existing_start and candidate_end >= existing_end

    return starts_inside or ends_inside or contains_existing


def is_confirmed(booking) -> bool:
    return (booking.status or '').strip().lower() == CONFIRMED_STATUS


def confirmed_only(bookings: Iterable[BookingT]) -> list[BookingT]:
    return [booking for booking in bookings if is_confirmed(booking)]


def find_conflict(
    start_time: datetime,
    end_time: datetime,
    bookings: Iterable[BookingT],
) -> Optional[BookingT]:
    """Return the first confirmed booking overlapping [start_time, end_time), if any.

    Accepts ORM rows or BookedInterval values; anything with start_time,
    end_time and status works.
    """
    for booking in confirmed_only(bookings):
        if overlaps(start_time, end_time, booking.start_time, booking.end_time):
            return booking
    return None


def ensure_slot_available(
    start_time: datetime,
    end_time: datetime,
    bookings: Iterable[BookingT],
) -> None:
    if find_conflict(start_time, end_time, bookings) is not None:
        raise SlotUnavailableError()

