from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from calendlier.scheduling.slots import (
    generate_slot_intervals,
    generate_slots,
    resolve_windows_for_date,
)
from calendlier.scheduling.types import DATE_SPECIFIC_DAY, AvailabilityWindow, BookedInterval

MONDAY = date(2024, 6, 10)

MONDAY_NINE_TO_FIVE = AvailabilityWindow(day_of_week=1, start_time=time(9, 0), end_time=time(17, 0))


def _utc(hour: int, minute: int = 0, day: date = MONDAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


def test_full_working_day_yields_half_hour_slots() -> None:
    slots = generate_slots(MONDAY, 'UTC', 30, [MONDAY_NINE_TO_FIVE])

    assert len(slots) == 16
    assert slots[0] == '09:00'
    assert slots[-1] == '16:30'


def test_confirmed_booking_removes_overlapping_slot() -> None:
    window = AvailabilityWindow(day_of_week=1, start_time=time(9, 0), end_time=time(10, 0))
    booking = BookedInterval(start_time=_utc(9, 0), end_time=_utc(9, 30))

    assert generate_slots(MONDAY, 'UTC', 30, [window], [booking]) == ['09:30']


def test_cancelled_booking_does_not_block() -> None:
    window = AvailabilityWindow(day_of_week=1, start_time=time(9, 0), end_time=time(10, 0))
    booking = BookedInterval(start_time=_utc(9, 0), end_time=_utc(9, 30), status='cancelled')

    assert generate_slots(MONDAY, 'UTC', 30, [window], [booking]) == ['09:00', '09:30']


def test_booking_straddling_two_slots_removes_both() -> None:
    booking = BookedInterval(start_time=_utc(9, 15), end_time=_utc(9, 45))

    slots = generate_slots(MONDAY, 'UTC', 30, [MONDAY_NINE_TO_FIVE], [booking])

    assert '09:00' not in slots
    assert '09:30' not in slots
    assert slots[0] == '10:00'


def test_date_specific_window_overrides_weekday() -> None:
    override = AvailabilityWindow(
        day_of_week=DATE_SPECIFIC_DAY,
        start_time=time(13, 0),
        end_time=time(14, 0),
        specific_date=MONDAY,
    )

    assert generate_slots(MONDAY, 'UTC', 30, [MONDAY_NINE_TO_FIVE, override]) == ['13:00', '13:30']


def test_date_specific_window_leaves_other_dates_alone() -> None:
    override = AvailabilityWindow(
        day_of_week=DATE_SPECIFIC_DAY,
        start_time=time(13, 0),
        end_time=time(14, 0),
        specific_date=MONDAY,
    )
    next_monday = MONDAY + timedelta(days=7)

    assert len(generate_slots(next_monday, 'UTC', 30, [MONDAY_NINE_TO_FIVE, override])) == 16


def test_no_windows_for_weekday_yields_nothing() -> None:
    sunday = date(2024, 6, 9)

    assert generate_slots(sunday, 'UTC', 30, [MONDAY_NINE_TO_FIVE]) == []


def test_partial_trailing_slot_is_dropped() -> None:
    window = AvailabilityWindow(day_of_week=1, start_time=time(9, 0), end_time=time(10, 0))

    assert generate_slots(MONDAY, 'UTC', 45, [window]) == ['09:00']


def test_window_shorter_than_duration_yields_nothing() -> None:
    window = AvailabilityWindow(day_of_week=1, start_time=time(9, 0), end_time=time(9, 20))

    assert generate_slots(MONDAY, 'UTC', 30, [window]) == []


def test_overlapping_windows_do_not_duplicate_slots() -> None:
    first = AvailabilityWindow(day_of_week=1, start_time=time(9, 0), end_time=time(11, 0))
    second = AvailabilityWindow(day_of_week=1, start_time=time(10, 0), end_time=time(12, 0))

    assert generate_slots(MONDAY, 'UTC', 60, [second, first]) == ['09:00', '10:00', '11:00']


def test_invalid_window_is_skipped() -> None:
    backwards = AvailabilityWindow(day_of_week=1, start_time=time(17, 0), end_time=time(9, 0))
    valid = AvailabilityWindow(day_of_week=1, start_time=time(9, 0), end_time=time(10, 0))

    assert generate_slots(MONDAY, 'UTC', 30, [backwards, valid]) == ['09:00', '09:30']


def test_windows_are_read_in_requested_timezone() -> None:
    window = AvailabilityWindow(day_of_week=1, start_time=time(9, 0), end_time=time(10, 0))

    intervals = generate_slot_intervals(MONDAY, 'America/New_York', 30, [window])

    assert [slot.start.astimezone(timezone.utc) for slot in intervals] == [_utc(13, 0), _utc(13, 30)]
    assert intervals[0].start.tzinfo == ZoneInfo('America/New_York')


def test_spring_forward_steps_in_absolute_time() -> None:
    dst_sunday = date(2024, 3, 10)
    window = AvailabilityWindow(day_of_week=0, start_time=time(1, 0), end_time=time(4, 0))

    assert generate_slots(dst_sunday, 'America/New_York', 60, [window]) == ['01:00', '03:00']


def test_generation_is_repeatable() -> None:
    booking = BookedInterval(start_time=_utc(12, 0), end_time=_utc(13, 0))

    first = generate_slots(MONDAY, 'UTC', 30, [MONDAY_NINE_TO_FIVE], [booking])
    second = generate_slots(MONDAY, 'UTC', 30, [MONDAY_NINE_TO_FIVE], [booking])

    assert first == second


@pytest.mark.parametrize('duration', [15, 25, 30, 45, 60, 90])
def test_slots_fit_window_and_avoid_bookings(duration: int) -> None:
    bookings = [
        BookedInterval(start_time=_utc(10, 10), end_time=_utc(10, 40)),
        BookedInterval(start_time=_utc(14, 0), end_time=_utc(15, 30)),
    ]

    intervals = generate_slot_intervals(MONDAY, 'UTC', duration, [MONDAY_NINE_TO_FIVE], bookings)

    assert intervals
    for slot in intervals:
        assert slot.end - slot.start == timedelta(minutes=duration)
        assert _utc(9, 0) <= slot.start and slot.end <= _utc(17, 0)
        for booking in bookings:
            assert slot.end <= booking.start_time or slot.start >= booking.end_time
    starts = [slot.start for slot in intervals]
    assert starts == sorted(starts)


def test_non_positive_duration_is_rejected() -> None:
    with pytest.raises(ValueError):
        generate_slots(MONDAY, 'UTC', 0, [MONDAY_NINE_TO_FIVE])


def test_resolve_windows_uses_sunday_zero_weekdays() -> None:
    sunday_window = AvailabilityWindow(day_of_week=0, start_time=time(9, 0), end_time=time(10, 0))

    assert resolve_windows_for_date(date(2024, 6, 9), [sunday_window, MONDAY_NINE_TO_FIVE]) == [sunday_window]


def test_fall_back_lists_each_local_time_once() -> None:
    dst_sunday = date(2024, 11, 3)
    window = AvailabilityWindow(day_of_week=0, start_time=time(0, 0), end_time=time(3, 0))

    intervals = generate_slot_intervals(dst_sunday, 'America/New_York', 60, [window])

    assert len(intervals) == 4
    assert generate_slots(dst_sunday, 'America/New_York', 60, [window]) == ['00:00', '01:00', '02:00']
