from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from calendlier.core import config


engine = create_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_availability_schema_checked = False
_booking_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _ensure_indexes(table_name: str, statements: list[str]) -> None:
    inspector = inspect(engine)
    if table_name not in inspector.get_table_names():
        return

    with engine.begin() as connection:
        for statement in statements:
            connection.execute(text(statement))


def ensure_availability_schema() -> None:
    global _availability_schema_checked

    if _availability_schema_checked:
        return

    with _schema_lock:
        if _availability_schema_checked:
            return

        _ensure_indexes(
            'schedules_availability',
            [
                'CREATE INDEX IF NOT EXISTS idx_availability_schedule_day '
                'ON schedules_availability(schedule_id, day_of_week)',
                'CREATE INDEX IF NOT EXISTS idx_availability_schedule_date '
                'ON schedules_availability(schedule_id, specific_date)',
            ],
        )

        _availability_schema_checked = True


def ensure_booking_schema() -> None:
    global _booking_schema_checked

    if _booking_schema_checked:
        return

    with _schema_lock:
        if _booking_schema_checked:
            return

        _ensure_indexes(
            'bookings',
            [
                'CREATE INDEX IF NOT EXISTS idx_bookings_event_start ON bookings(event_id, start_time)',
                'CREATE INDEX IF NOT EXISTS idx_bookings_status_start ON bookings(status, start_time)',
            ],
        )

        _booking_schema_checked = True
