"""User profile store: selected content and mirrored totals."""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from creator_stats.database import async_session
from creator_stats.models import UserProfile

logger = logging.getLogger(__name__)


class ProfileService:
    """Reads and writes ``UserProfile`` rows."""

    def __init__(self, session_factory: async_sessionmaker = async_session):
        self.session_factory = session_factory

    async def ensure_profile(self, user_id: int) -> None:
        async with self.session_factory() as db:
            if await db.get(UserProfile, user_id) is None:
                db.add(UserProfile(user_id=user_id, total_visits=0, total_playing=0))
                await db.commit()

    async def has_profile(self, user_id: int) -> bool:
        async with self.session_factory() as db:
            return await db.get(UserProfile, user_id) is not None

    async def get_selected(self, user_id: int) -> Optional[int]:
        """The user's currently selected universe id, if any."""
        async with self.session_factory() as db:
            profile = await db.get(UserProfile, user_id)
            return profile.current_universe_id if profile else None

    async def set_selected(self, user_id: int, universe_id: Optional[int]) -> bool:
        async with self.session_factory() as db:
            profile = await db.get(UserProfile, user_id)
            if profile is None:
                return False
            profile.current_universe_id = universe_id
            await db.commit()
            return True

    async def publish_totals(self, user_id: int, total_visits: int, total_playing: int) -> bool:
        """Mirror the latest totals onto the profile, if the user has one."""
        async with self.session_factory() as db:
            profile = await db.get(UserProfile, user_id)
            if profile is None:
                logger.debug(f"[Profiles] No profile for user {user_id}, totals not mirrored")
                return False
            profile.total_visits = total_visits
            profile.total_playing = total_playing
            await db.commit()
            return True

    async def get_profile(self, user_id: int) -> Optional[dict]:
        async with self.session_factory() as db:
            profile = await db.get(UserProfile, user_id)
            if profile is None:
                return None
            return {
                "user_id": profile.user_id,
                "current_universe_id": profile.current_universe_id,
                "total_visits": profile.total_visits or 0,
                "total_playing": profile.total_playing or 0,
            }
