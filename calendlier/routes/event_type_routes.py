import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from calendlier.database import get_db
from calendlier.models.booking import Booking
from calendlier.models.event_type import EVENT_LOCATIONS, EventType
from calendlier.routes.common import (
    database_unavailable,
    ensure_database_ready,
    get_or_create_owner,
    get_owner,
    normalize_email,
    require_owner_email,
)

router = APIRouter(tags=['event-types'])

logger = logging.getLogger(__name__)

MAX_EVENT_NAME_LENGTH = 200
MAX_DURATION_MINUTES = 24 * 60


def _normalize_name(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError('Name is required.')
    if len(normalized) > MAX_EVENT_NAME_LENGTH:
        raise ValueError(f'Name must be {MAX_EVENT_NAME_LENGTH} characters or fewer.')
    return normalized


def _normalize_location(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in EVENT_LOCATIONS:
        raise ValueError('Invalid location.')
    return normalized


class CreateEventTypeRequest(BaseModel):
    owner_email: str
    name: str
    description: str | None = None
    duration_in_minutes: int = Field(ge=1, le=MAX_DURATION_MINUTES)
    location: str = 'google_meet'

    @field_validator('owner_email')
    @classmethod
    def validate_owner_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _normalize_name(value)

    @field_validator('location')
    @classmethod
    def validate_location(cls, value: str) -> str:
        return _normalize_location(value)


class UpdateEventTypeRequest(BaseModel):
    owner_email: str
    name: str | None = None
    description: str | None = None
    duration_in_minutes: int | None = Field(default=None, ge=1, le=MAX_DURATION_MINUTES)
    is_active: bool | None = None
    location: str | None = None

    @field_validator('owner_email')
    @classmethod
    def validate_owner_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _normalize_name(value)

    @field_validator('location')
    @classmethod
    def validate_location(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _normalize_location(value)


class EventTypeResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    duration_in_minutes: int
    is_active: bool
    location: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


def get_owned_event_type(db: Session, event_type_id: int, owner_email: str) -> EventType:
    owner = get_owner(db, owner_email)
    event_type = db.query(EventType).filter(EventType.id == event_type_id).first()

    if not event_type or owner is None or event_type.user_id != owner.id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Event type not found.',
        )

    return event_type


@router.post('', response_model=EventTypeResponse, status_code=status.HTTP_201_CREATED)
def create_event_type(data: CreateEventTypeRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        owner = get_or_create_owner(db, data.owner_email)
        event_type = EventType(
            user_id=owner.id,
            name=data.name,
            description=data.description,
            duration_in_minutes=data.duration_in_minutes,
            location=data.location,
            is_active=True,
        )
        db.add(event_type)
        db.commit()
        db.refresh(event_type)

        logger.info('Created event type %s for %s', event_type.id, data.owner_email)
        return event_type
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('', response_model=list[EventTypeResponse])
def list_event_types(
    owner_email: str = Query(...),
    db: Session = Depends(get_db),
):
    normalized_email = require_owner_email(owner_email)

    ensure_database_ready()

    try:
        owner = get_owner(db, normalized_email)
        if owner is None:
            return []

        return db.query(EventType).filter(
            EventType.user_id == owner.id,
        ).order_by(EventType.created_at.asc(), EventType.id.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{event_type_id}', response_model=EventTypeResponse)
def get_event_type(
    event_type_id: int,
    owner_email: str = Query(...),
    db: Session = Depends(get_db),
):
    normalized_email = require_owner_email(owner_email)

    ensure_database_ready()

    try:
        return get_owned_event_type(db, event_type_id, normalized_email)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.patch('/{event_type_id}', response_model=EventTypeResponse)
def update_event_type(
    event_type_id: int,
    data: UpdateEventTypeRequest,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        event_type = get_owned_event_type(db, event_type_id, data.owner_email)

        updates = data.model_dump(exclude={'owner_email'}, exclude_unset=True)
        for field_name, value in updates.items():
            if value is None and field_name != 'description':
                continue
            setattr(event_type, field_name, value)

        db.commit()
        db.refresh(event_type)
        return event_type
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/{event_type_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_event_type(
    event_type_id: int,
    owner_email: str = Query(...),
    db: Session = Depends(get_db),
):
    normalized_email = require_owner_email(owner_email)

    ensure_database_ready()

    try:
        event_type = get_owned_event_type(db, event_type_id, normalized_email)

        has_bookings = db.query(Booking.id).filter(Booking.event_id == event_type.id).first()
        if has_bookings:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='This event type has bookings. Deactivate it instead.',
            )

        db.delete(event_type)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
