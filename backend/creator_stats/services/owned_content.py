"""Per-user cache of owned content, the single refresh point for content lists."""

import asyncio
import logging
from typing import Dict, Optional

from creator_stats.config import settings
from creator_stats.schemas import OwnedEntry, OwnedPayload
from creator_stats.services.cache import UserCacheStore
from creator_stats.services.content_sources import ContentSourceFetcher
from creator_stats.services.icons import IconResolver
from creator_stats.services.merge import build_owned_payload, merge_unique_by_identity

logger = logging.getLogger(__name__)


class OwnedContentService:
    """Builds and caches the owned content payload per user.

    Everything that needs a user's content list goes through
    ``get_owned_payload`` so there is at most one fetch per TTL window.
    Concurrent callers for the same user share one refresh. Payloads are only
    stored for users the store has open, and a refresh that outlives the
    session it started in is discarded.
    """

    def __init__(
        self,
        store: UserCacheStore,
        fetcher: ContentSourceFetcher,
        icons: IconResolver,
        ttl_seconds: float = None
    ):
        self.store = store
        self.fetcher = fetcher
        self.icons = icons
        self.ttl_seconds = settings.content_cache_ttl if ttl_seconds is None else ttl_seconds
        self._refresh_locks: Dict[int, asyncio.Lock] = {}
        store.on_evict(lambda user_id: self._refresh_locks.pop(user_id, None))

    def _fresh_payload(self, user_id: int) -> Optional[OwnedPayload]:
        record = self.store.get_content(user_id)
        if record is not None and record.is_fresh(self.store.now(), self.ttl_seconds):
            return record.payload
        return None

    async def get_owned_payload(self, user_id: int) -> OwnedPayload:
        """Return the cached payload, refreshing it from upstream when stale."""
        payload = self._fresh_payload(user_id)
        if payload is not None:
            logger.debug(f"[Content] Cache hit for user {user_id}")
            return payload

        if not self.store.is_open(user_id):
            # Nothing is cached for users without a session, so there is nothing to share
            return await self._refresh(user_id)

        lock = self._refresh_locks.setdefault(user_id, asyncio.Lock())
        async with lock:
            # Another caller may have refreshed while we waited
            payload = self._fresh_payload(user_id)
            if payload is not None:
                return payload
            return await self._refresh(user_id)

    async def _refresh(self, user_id: int) -> OwnedPayload:
        fetched_at = self.store.now()
        generation = self.store.generation(user_id)

        user_content = await self.fetcher.fetch_owned_content(user_id)
        group_content = await self.fetcher.fetch_group_eligible_content(user_id)
        owned = merge_unique_by_identity(user_content, group_content)

        # Icons last so thumbnails are looked up once per merged id
        await self.icons.fill_icons(owned)

        payload = build_owned_payload(owned)
        if generation is not None:
            self.store.put_content(user_id, payload, timestamp=fetched_at, generation=generation)
        logger.info(
            f"[Content] Refreshed user {user_id}: {len(user_content)} own, "
            f"{len(group_content)} from groups, {len(payload)} unique"
        )
        return payload

    def cached_payload(self, user_id: int) -> Optional[OwnedPayload]:
        """Current cached payload regardless of age, without fetching."""
        record = self.store.get_content(user_id)
        return record.payload if record is not None else None

    def find_entry(self, user_id: int, universe_id: int) -> Optional[OwnedEntry]:
        payload = self.cached_payload(user_id) or ()
        return next((entry for entry in payload if entry.universe_id == universe_id), None)

    def owns(self, user_id: int, universe_id: int) -> bool:
        """Whether the cached payload contains ``universe_id``. Never fetches."""
        return self.find_entry(user_id, universe_id) is not None
