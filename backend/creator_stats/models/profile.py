"""Persistent user profile: selected content and mirrored totals."""

from sqlalchemy import Column, BigInteger, DateTime
from sqlalchemy.sql import func
from creator_stats.database import Base


class UserProfile(Base):
    """Per-user profile keyed by the upstream user id."""
    __tablename__ = "user_profiles"

    user_id = Column(BigInteger, primary_key=True, autoincrement=False)
    current_universe_id = Column(BigInteger, nullable=True)  # currently selected content
    total_visits = Column(BigInteger, default=0)  # mirrored from the totals aggregator
    total_playing = Column(BigInteger, default=0)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
