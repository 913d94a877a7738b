"""Reward issuance backed by the database."""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from creator_stats.database import async_session
from creator_stats.models import AwardedReward

logger = logging.getLogger(__name__)


class RewardService:
    """Issues named rewards to users. Issuing an owned reward is a no-op."""

    def __init__(self, session_factory: async_sessionmaker = async_session):
        self.session_factory = session_factory

    async def _find(self, db: AsyncSession, user_id: int, reward_name: str):
        result = await db.execute(
            select(AwardedReward).where(
                AwardedReward.user_id == user_id,
                AwardedReward.reward_name == reward_name
            )
        )
        return result.scalar_one_or_none()

    async def award(self, user_id: int, reward_name: str) -> bool:
        """Issue a reward. Returns True only if it was newly issued."""
        async with self.session_factory() as db:
            if await self._find(db, user_id, reward_name):
                return False

            db.add(AwardedReward(user_id=user_id, reward_name=reward_name))
            try:
                await db.commit()
            except IntegrityError:
                # Issued concurrently by someone else
                await db.rollback()
                return False

        logger.info(f"[Rewards] Awarded '{reward_name}' to user {user_id}")
        return True

    async def has_reward(self, user_id: int, reward_name: str) -> bool:
        async with self.session_factory() as db:
            return await self._find(db, user_id, reward_name) is not None

    async def rewards_for(self, user_id: int) -> List[str]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(AwardedReward.reward_name)
                .where(AwardedReward.user_id == user_id)
                .order_by(AwardedReward.id)
            )
            return list(result.scalars().all())
