"""Event type model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, func
from calendlier.database import Base

EVENT_LOCATIONS = ('google_meet', 'physical', 'other')


class EventType(Base):
    """A bookable meeting template owned by a user."""
    __tablename__ = "events"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text)
    duration_in_minutes = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    location = Column(String, default='google_meet', nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
