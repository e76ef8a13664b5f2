"""Booking model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship
from calendlier.database import Base
from calendlier.models.event_type import EventType
from calendlier.scheduling.types import BookedInterval

BOOKING_CONFIRMED = 'confirmed'
BOOKING_CANCELLED = 'cancelled'


class Booking(Base):
    """An invitee's reservation of an event type. Times are stored in UTC."""
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    attendee_email = Column(String, nullable=False)
    attendee_name = Column(String, nullable=False)
    attendee_timezone = Column(String, nullable=False, default='UTC')
    google_calendar_event_id = Column(String)
    google_meet_link = Column(String)
    status = Column(String, nullable=False, default=BOOKING_CONFIRMED)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    event = relationship(EventType)

    def to_interval(self) -> BookedInterval:
        return BookedInterval(start_time=self.start_time, end_time=self.end_time, status=self.status)
