from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from calendlier.database import ensure_availability_schema, ensure_booking_schema
from calendlier.models.user import User
from calendlier.scheduling.validation import validate_timezone

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def ensure_database_ready() -> None:
    try:
        ensure_availability_schema()
        ensure_booking_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


def normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    if not normalized:
        raise ValueError('Email is required.')
    if '@' not in normalized:
        raise ValueError('Email is invalid.')
    return normalized


def require_owner_email(value: str) -> str:
    try:
        return normalize_email(value)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Owner email is required.',
        ) from exc


def require_timezone(value: str) -> str:
    try:
        return validate_timezone(value)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Invalid timezone.',
        ) from exc


def get_owner(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == email).first()


def get_or_create_owner(db: Session, email: str) -> User:
    owner = get_owner(db, email)
    if owner is None:
        owner = User(email=email)
        db.add(owner)
        db.flush()
    return owner
