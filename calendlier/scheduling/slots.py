"""
Slot generation.

Turns an owner's availability windows for one date into the list of bookable
start times, considering:
- date-specific overrides, which replace the weekday's regular windows
- the event duration (no partial slots at the end of a window)
- confirmed bookings, which remove every slot they overlap
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Sequence
from zoneinfo import ZoneInfo

from calendlier.scheduling.overlap import confirmed_only, overlaps
from calendlier.scheduling.types import AvailabilityWindow, Slot, day_of_week

logger = logging.getLogger(__name__)

SLOT_TIME_FORMAT = '%H:%M'


def resolve_windows_for_date(
    target_date: date,
    windows: Iterable[AvailabilityWindow],
) -> list[AvailabilityWindow]:
    """Pick the windows that apply to a date.

    Any window pinned to the date wins outright; otherwise the regular windows
    for the date's weekday apply.
    """
    windows = list(windows)

    date_specific = [window for window in windows if window.specific_date == target_date]
    if date_specific:
        return date_specific

    weekday = day_of_week(target_date)
    return [
        window
        for window in windows
        if window.specific_date is None and window.day_of_week == weekday
    ]


def window_bounds(
    target_date: date,
    window: AvailabilityWindow,
    zone: ZoneInfo,
) -> tuple[datetime, datetime]:
    """Absolute UTC start and end of a window on a date, read in the given zone."""
    start = datetime.combine(target_date, window.start_time, tzinfo=zone)
    end = datetime.combine(target_date, window.end_time, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def generate_slot_intervals(
    target_date: date,
    tz_name: str,
    duration_minutes: int,
    windows: Iterable[AvailabilityWindow],
    existing_bookings: Sequence = (),
) -> list[Slot]:
    if duration_minutes <= 0:
        raise ValueError('Duration must be positive')

    zone = ZoneInfo(tz_name)
    duration = timedelta(minutes=duration_minutes)
    blocking = confirmed_only(existing_bookings)

    applicable = resolve_windows_for_date(target_date, windows)
    if not applicable:
        return []

    slots: dict[datetime, Slot] = {}

    for window in applicable:
        if window.start_time >= window.end_time:
            logger.warning(
                'Skipping invalid availability window %s-%s on %s',
                window.start_time,
                window.end_time,
                target_date,
            )
            continue

        window_start, window_end = window_bounds(target_date, window, zone)
        current_start = window_start

        while current_start < window_end:
            current_end = current_start + duration
            if current_end > window_end:
                break

            is_free = not any(
                overlaps(current_start, current_end, booking.start_time, booking.end_time)
                for booking in blocking
            )
            if is_free and current_start not in slots:
                slots[current_start] = Slot(
                    start=current_start.astimezone(zone),
                    end=current_end.astimezone(zone),
                )

            current_start = current_end

    return [slots[start] for start in sorted(slots)]


def generate_slots(
    target_date: date,
    tz_name: str,
    duration_minutes: int,
    windows: Iterable[AvailabilityWindow],
    existing_bookings: Sequence = (),
) -> list[str]:
    """Bookable start times for a date as local HH:MM strings, earliest first.

    When clocks fall back, two instants can share one label; only the earlier
    is listed, matching how a naive local start is read at booking time.
    """
    intervals = generate_slot_intervals(
        target_date,
        tz_name,
        duration_minutes,
        windows,
        existing_bookings,
    )

    labels: list[str] = []
    for slot in intervals:
        label = slot.start.strftime(SLOT_TIME_FORMAT)
        if label not in labels:
            labels.append(label)
    return labels
