"""User model definitions."""

from sqlalchemy import Column, DateTime, Integer, String, func
from calendlier.database import Base


class User(Base):
    """Represents a schedule owner."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
