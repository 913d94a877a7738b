"""Rewards that have been issued to users."""

from sqlalchemy import Column, Integer, BigInteger, String, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from creator_stats.database import Base


class AwardedReward(Base):
    """One row per (user, reward); the unique constraint makes issuance idempotent."""
    __tablename__ = "awarded_rewards"
    __table_args__ = (
        UniqueConstraint("user_id", "reward_name", name="uq_awarded_reward_user_name"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, nullable=False, index=True)
    reward_name = Column(String(100), nullable=False)  # Welcome, OneThousandVisits, ...
    created_at = Column(DateTime, server_default=func.now())
