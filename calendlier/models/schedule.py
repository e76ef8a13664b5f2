"""Schedule and availability window model definitions."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Time, func
from sqlalchemy.orm import relationship
from calendlier.database import Base
from calendlier.scheduling.types import AvailabilityWindow


class Schedule(Base):
    """An owner's working timezone and the windows attached to it."""
    __tablename__ = "schedules"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    timezone = Column(String, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    availability = relationship(
        "ScheduleAvailability",
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by="ScheduleAvailability.start_time",
    )


class ScheduleAvailability(Base):
    """A weekly recurring window, or a date-specific one when specific_date is set."""
    __tablename__ = "schedules_availability"

    id = Column(Integer, primary_key=True)
    schedule_id = Column(Integer, ForeignKey("schedules.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0=Sunday .. 6=Saturday, -1 for date-specific rows
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    specific_date = Column(Date)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    schedule = relationship("Schedule", back_populates="availability")

    def to_window(self) -> AvailabilityWindow:
        return AvailabilityWindow(
            day_of_week=self.day_of_week,
            start_time=self.start_time,
            end_time=self.end_time,
            specific_date=self.specific_date,
        )
