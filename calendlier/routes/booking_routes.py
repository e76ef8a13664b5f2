import logging
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from calendlier.database import get_db
from calendlier.models.booking import BOOKING_CANCELLED, BOOKING_CONFIRMED, Booking
from calendlier.models.event_type import EventType
from calendlier.models.schedule import Schedule
from calendlier.models.user import User
from calendlier.routes.common import (
    database_unavailable,
    ensure_database_ready,
    get_owner,
    normalize_email,
    require_owner_email,
    require_timezone,
)
from calendlier.scheduling.overlap import SlotUnavailableError, as_utc, ensure_slot_available
from calendlier.scheduling.slots import generate_slot_intervals, generate_slots
from calendlier.scheduling.validation import validate_timezone
from calendlier.services.google_calendar import remove_booking_from_calendar, sync_booking_to_calendar

router = APIRouter(tags=['bookings'])

logger = logging.getLogger(__name__)

MAX_ATTENDEE_NAME_LENGTH = 200


class CreateBookingRequest(BaseModel):
    event_id: int
    start_time: datetime
    attendee_name: str
    attendee_email: str
    attendee_timezone: str

    @field_validator('attendee_name')
    @classmethod
    def validate_attendee_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Attendee name is required.')
        if len(normalized) > MAX_ATTENDEE_NAME_LENGTH:
            raise ValueError(f'Attendee name must be {MAX_ATTENDEE_NAME_LENGTH} characters or fewer.')
        return normalized

    @field_validator('attendee_email')
    @classmethod
    def validate_attendee_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator('attendee_timezone')
    @classmethod
    def validate_attendee_timezone(cls, value: str) -> str:
        return validate_timezone(value)


class PublicEventResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    duration_in_minutes: int
    location: str


class AvailableSlotsResponse(BaseModel):
    date: date
    timezone: str
    duration_in_minutes: int
    slots: list[str]


class BookingResponse(BaseModel):
    id: int
    event_id: int
    event_name: str | None = None
    start_time: datetime
    end_time: datetime
    attendee_name: str
    attendee_email: str
    attendee_timezone: str
    status: str
    google_calendar_event_id: str | None = None
    google_meet_link: str | None = None


def build_booking_response(booking: Booking) -> BookingResponse:
    return BookingResponse(
        id=booking.id,
        event_id=booking.event_id,
        event_name=booking.event.name if booking.event else None,
        start_time=as_utc(booking.start_time),
        end_time=as_utc(booking.end_time),
        attendee_name=booking.attendee_name,
        attendee_email=booking.attendee_email,
        attendee_timezone=booking.attendee_timezone,
        status=booking.status,
        google_calendar_event_id=booking.google_calendar_event_id,
        google_meet_link=booking.google_meet_link,
    )


def get_bookable_event(db: Session, event_id: int) -> EventType:
    event_type = db.query(EventType).filter(EventType.id == event_id).first()
    if not event_type or not event_type.is_active:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Event not found.',
        )
    return event_type


def day_bounds_utc(target_date: date, tz_name: str) -> tuple[datetime, datetime]:
    zone = ZoneInfo(tz_name)
    day_start = datetime.combine(target_date, time.min, tzinfo=zone)
    day_end = datetime.combine(target_date + timedelta(days=1), time.min, tzinfo=zone)
    return day_start.astimezone(timezone.utc), day_end.astimezone(timezone.utc)


def get_confirmed_bookings_between(
    db: Session,
    event_id: int,
    range_start: datetime,
    range_end: datetime,
) -> list[Booking]:
    return db.query(Booking).filter(
        Booking.event_id == event_id,
        Booking.status == BOOKING_CONFIRMED,
        Booking.start_time < range_end,
        Booking.end_time > range_start,
    ).all()


def is_offered_slot(db: Session, event_type: EventType, start_time: datetime, tz_name: str) -> bool:
    """Whether start_time is a slot start the owner's windows produce on that local date."""
    schedule = db.query(Schedule).filter(Schedule.user_id == event_type.user_id).first()
    if schedule is None:
        return False

    local_date = start_time.astimezone(ZoneInfo(tz_name)).date()
    intervals = generate_slot_intervals(
        local_date,
        tz_name,
        event_type.duration_in_minutes,
        [row.to_window() for row in schedule.availability],
    )
    return any(as_utc(slot.start) == start_time for slot in intervals)


@router.get('/events/{event_id}', response_model=PublicEventResponse)
def get_public_event(event_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        event_type = get_bookable_event(db, event_id)
        return PublicEventResponse(
            id=event_type.id,
            name=event_type.name,
            description=event_type.description,
            duration_in_minutes=event_type.duration_in_minutes,
            location=event_type.location,
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/events/{event_id}/available-slots', response_model=AvailableSlotsResponse)
def list_available_slots(
    event_id: int,
    slot_date: date = Query(..., alias='date'),
    tz_name: str = Query(..., alias='timezone'),
    db: Session = Depends(get_db),
):
    tz_name = require_timezone(tz_name)

    ensure_database_ready()

    try:
        event_type = get_bookable_event(db, event_id)

        schedule = db.query(Schedule).filter(Schedule.user_id == event_type.user_id).first()
        if schedule is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Schedule not found.',
            )

        windows = [row.to_window() for row in schedule.availability]
        range_start, range_end = day_bounds_utc(slot_date, tz_name)
        existing_bookings = get_confirmed_bookings_between(db, event_type.id, range_start, range_end)

        slots = generate_slots(
            slot_date,
            tz_name,
            event_type.duration_in_minutes,
            windows,
            [booking.to_interval() for booking in existing_bookings],
        )

        return AvailableSlotsResponse(
            date=slot_date,
            timezone=tz_name,
            duration_in_minutes=event_type.duration_in_minutes,
            slots=slots,
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/bookings', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(data: CreateBookingRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        # Row lock serializes concurrent bookings of one event type (PostgreSQL; a no-op on SQLite).
        event_type = db.query(EventType).filter(EventType.id == data.event_id).with_for_update().first()
        if not event_type:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Event not found.',
            )
        if not event_type.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='This event type is not accepting bookings.',
            )

        start_time = data.start_time
        if start_time.tzinfo is None:
            start_time = start_time.replace(tzinfo=ZoneInfo(data.attendee_timezone))
        start_time = as_utc(start_time).replace(second=0, microsecond=0)
        end_time = start_time + timedelta(minutes=event_type.duration_in_minutes)

        if start_time <= datetime.now(timezone.utc):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Bookings must be scheduled in the future.',
            )

        existing_bookings = get_confirmed_bookings_between(db, event_type.id, start_time, end_time)
        try:
            ensure_slot_available(start_time, end_time, existing_bookings)
        except SlotUnavailableError as exc:
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=exc.message,
            ) from exc

        if not is_offered_slot(db, event_type, start_time, data.attendee_timezone):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='The requested time is not one of the available slots.',
            )

        booking = Booking(
            event_id=event_type.id,
            user_id=event_type.user_id,
            start_time=start_time,
            end_time=end_time,
            attendee_name=data.attendee_name,
            attendee_email=data.attendee_email,
            attendee_timezone=data.attendee_timezone,
            status=BOOKING_CONFIRMED,
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)

        logger.info('Booked event %s at %s for %s', event_type.id, start_time.isoformat(), data.attendee_email)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    booking = sync_booking_to_calendar(db, booking, event_type)
    return build_booking_response(booking)


@router.get('/bookings', response_model=list[BookingResponse])
def list_upcoming_bookings(
    owner_email: str = Query(...),
    db: Session = Depends(get_db),
):
    normalized_email = require_owner_email(owner_email)

    ensure_database_ready()

    try:
        owner = get_owner(db, normalized_email)
        if owner is None:
            return []

        bookings = db.query(Booking).filter(
            Booking.user_id == owner.id,
            Booking.status == BOOKING_CONFIRMED,
            Booking.start_time >= datetime.now(timezone.utc),
        ).order_by(Booking.start_time.asc()).all()

        return [build_booking_response(booking) for booking in bookings]
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/bookings/{booking_id}/cancel', response_model=BookingResponse)
def cancel_booking(
    booking_id: int,
    requester_email: str = Query(...),
    db: Session = Depends(get_db),
):
    normalized_email = requester_email.strip().lower()
    if not normalized_email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Requester email is required.',
        )

    ensure_database_ready()

    try:
        booking = db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Booking not found.',
            )

        owner = db.query(User).filter(User.id == booking.user_id).first()
        owner_email = owner.email if owner else None
        if normalized_email not in {owner_email, booking.attendee_email}:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only the owner or the attendee can cancel this booking.',
            )

        if booking.status == BOOKING_CANCELLED:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Booking is already cancelled.',
            )

        booking.status = BOOKING_CANCELLED
        db.commit()
        db.refresh(booking)

        logger.info('Cancelled booking %s by %s', booking.id, normalized_email)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    remove_booking_from_calendar(db, booking)
    return build_booking_response(booking)
