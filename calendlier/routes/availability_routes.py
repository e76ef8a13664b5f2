import logging
from datetime import date, time

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from calendlier.core import config
from calendlier.database import get_db
from calendlier.models.schedule import Schedule, ScheduleAvailability
from calendlier.routes.common import (
    database_unavailable,
    ensure_database_ready,
    get_or_create_owner,
    normalize_email,
    require_owner_email,
)
from calendlier.scheduling.types import DATE_SPECIFIC_DAY, WEEKDAY_NAMES
from calendlier.scheduling.validation import (
    WindowError,
    parse_time_of_day,
    validate_timezone,
    validate_window,
)

router = APIRouter(tags=['availability'])

logger = logging.getLogger(__name__)

DEFAULT_WORKING_DAYS = (1, 2, 3, 4, 5)
DEFAULT_START_TIME = time(9, 0)
DEFAULT_END_TIME = time(17, 0)
TIME_OF_DAY_FORMAT = '%H:%M'


class TimeRangeRequest(BaseModel):
    start_time: time
    end_time: time

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def parse_time(cls, value):
        if isinstance(value, str):
            return parse_time_of_day(value)
        return value

    @model_validator(mode='after')
    def validate_range(self):
        if self.start_time >= self.end_time:
            raise ValueError(WindowError.END_NOT_AFTER_START.value)
        return self


class DayAvailabilityRequest(BaseModel):
    day_of_week: int
    enabled: bool = True
    slots: list[TimeRangeRequest] = []

    @field_validator('day_of_week')
    @classmethod
    def validate_day_of_week(cls, value: int) -> int:
        if not 0 <= value <= 6:
            raise ValueError(WindowError.INVALID_DAY.value)
        return value

    @model_validator(mode='after')
    def validate_windows(self):
        for slot in self.slots:
            error = validate_window(self.day_of_week, slot.start_time, slot.end_time)
            if error is not None:
                raise ValueError(error.value)
        return self


class WeeklyAvailabilityRequest(BaseModel):
    owner_email: str
    timezone: str
    days: list[DayAvailabilityRequest]

    @field_validator('owner_email')
    @classmethod
    def validate_owner_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator('timezone')
    @classmethod
    def validate_schedule_timezone(cls, value: str) -> str:
        return validate_timezone(value)

    @field_validator('days')
    @classmethod
    def validate_unique_days(cls, value: list[DayAvailabilityRequest]) -> list[DayAvailabilityRequest]:
        seen = [day.day_of_week for day in value]
        if len(seen) != len(set(seen)):
            raise ValueError('Each day of week may only appear once.')
        return value


class DateSpecificHoursRequest(BaseModel):
    owner_email: str
    date: date
    slots: list[TimeRangeRequest] = []

    @field_validator('owner_email')
    @classmethod
    def validate_owner_email(cls, value: str) -> str:
        return normalize_email(value)


class WeeklyWindowResponse(BaseModel):
    id: int
    day_of_week: int
    day_name: str
    start_time: str
    end_time: str


class DateSpecificWindowResponse(BaseModel):
    id: int
    date: date
    start_time: str
    end_time: str


class ScheduleResponse(BaseModel):
    id: int
    timezone: str
    availability: list[WeeklyWindowResponse]
    date_specific_hours: list[DateSpecificWindowResponse]


def format_time_of_day(value: time) -> str:
    return value.strftime(TIME_OF_DAY_FORMAT)


def build_schedule_response(schedule: Schedule) -> ScheduleResponse:
    regular = [row for row in schedule.availability if row.specific_date is None]
    date_specific = [row for row in schedule.availability if row.specific_date is not None]

    return ScheduleResponse(
        id=schedule.id,
        timezone=schedule.timezone,
        availability=[
            WeeklyWindowResponse(
                id=row.id,
                day_of_week=row.day_of_week,
                day_name=WEEKDAY_NAMES[row.day_of_week],
                start_time=format_time_of_day(row.start_time),
                end_time=format_time_of_day(row.end_time),
            )
            for row in sorted(regular, key=lambda row: (row.day_of_week, row.start_time))
        ],
        date_specific_hours=[
            DateSpecificWindowResponse(
                id=row.id,
                date=row.specific_date,
                start_time=format_time_of_day(row.start_time),
                end_time=format_time_of_day(row.end_time),
            )
            for row in sorted(date_specific, key=lambda row: (row.specific_date, row.start_time))
        ],
    )


def get_or_create_schedule(db: Session, owner_email: str, timezone: str | None = None) -> Schedule:
    """Load an owner's schedule, creating one with Mon-Fri 09:00-17:00 on first use."""
    owner = get_or_create_owner(db, owner_email)
    schedule = db.query(Schedule).filter(Schedule.user_id == owner.id).first()
    if schedule is not None:
        return schedule

    schedule = Schedule(user_id=owner.id, timezone=timezone or config.DEFAULT_SCHEDULE_TIMEZONE)
    schedule.availability = [
        ScheduleAvailability(
            day_of_week=day_of_week,
            start_time=DEFAULT_START_TIME,
            end_time=DEFAULT_END_TIME,
        )
        for day_of_week in DEFAULT_WORKING_DAYS
    ]
    db.add(schedule)
    db.flush()

    logger.info('Created default schedule %s for %s', schedule.id, owner_email)
    return schedule


def replace_weekly_windows(schedule: Schedule, days: list[DayAvailabilityRequest]) -> None:
    """Replace the regular windows of exactly the days submitted; other days are untouched."""
    changed_days = {day.day_of_week for day in days}

    schedule.availability = [
        row
        for row in schedule.availability
        if row.specific_date is not None or row.day_of_week not in changed_days
    ]

    for day in days:
        if not day.enabled:
            continue
        for slot in day.slots:
            schedule.availability.append(
                ScheduleAvailability(
                    day_of_week=day.day_of_week,
                    start_time=slot.start_time,
                    end_time=slot.end_time,
                )
            )


def replace_date_specific_windows(schedule: Schedule, target_date: date, slots: list[TimeRangeRequest]) -> None:
    schedule.availability = [
        row for row in schedule.availability if row.specific_date != target_date
    ]

    for slot in slots:
        schedule.availability.append(
            ScheduleAvailability(
                day_of_week=DATE_SPECIFIC_DAY,
                start_time=slot.start_time,
                end_time=slot.end_time,
                specific_date=target_date,
            )
        )


@router.get('', response_model=ScheduleResponse)
def get_availability(
    owner_email: str = Query(...),
    db: Session = Depends(get_db),
):
    normalized_email = require_owner_email(owner_email)

    ensure_database_ready()

    try:
        schedule = get_or_create_schedule(db, normalized_email)
        db.commit()
        db.refresh(schedule)
        return build_schedule_response(schedule)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.put('', response_model=ScheduleResponse)
def update_weekly_availability(data: WeeklyAvailabilityRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        schedule = get_or_create_schedule(db, data.owner_email, data.timezone)
        schedule.timezone = data.timezone
        replace_weekly_windows(schedule, data.days)
        db.commit()
        db.refresh(schedule)

        logger.info(
            'Updated weekly availability for %s (days %s)',
            data.owner_email,
            sorted(day.day_of_week for day in data.days),
        )
        return build_schedule_response(schedule)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.put('/date-specific', response_model=ScheduleResponse)
def set_date_specific_hours(data: DateSpecificHoursRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        schedule = get_or_create_schedule(db, data.owner_email)
        replace_date_specific_windows(schedule, data.date, data.slots)
        db.commit()
        db.refresh(schedule)

        logger.info('Set %d date-specific window(s) on %s for %s', len(data.slots), data.date, data.owner_email)
        return build_schedule_response(schedule)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
