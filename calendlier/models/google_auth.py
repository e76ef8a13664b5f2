"""Stored Google OAuth tokens."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func
from calendlier.database import Base


class GoogleAuth(Base):
    """OAuth tokens an owner granted for calendar access. Written by the OAuth collaborator."""
    __tablename__ = "google_auth"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=False)
    expires_at = Column(DateTime, nullable=False)  # naive UTC, as google-auth expects
    scope = Column(Text, nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
