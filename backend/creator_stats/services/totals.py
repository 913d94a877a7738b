"""Totals of live counters across a user's owned content."""

import logging
from typing import Any, Dict, Iterable, List

from creator_stats.config import settings
from creator_stats.schemas import OwnedEntry, Totals
from creator_stats.services.cache import UserCacheStore
from creator_stats.services.http_client import JsonHttpClient
from creator_stats.services.owned_content import OwnedContentService
from creator_stats.services.pagination import chunk_numbers
from creator_stats.utils import to_int, to_number

logger = logging.getLogger(__name__)


class TotalsAggregator:
    """Sums ``playing`` and ``visits`` for everything a user owns.

    Totals have their own, shorter cache lifetime than the content list:
    composition changes rarely, counters change constantly.
    """

    def __init__(
        self,
        store: UserCacheStore,
        owned_content: OwnedContentService,
        client: JsonHttpClient,
        games_api_url: str = None,
        chunk_size: int = None,
        ttl_seconds: float = None
    ):
        self.store = store
        self.owned_content = owned_content
        self.client = client
        self.games_api_url = (games_api_url or settings.games_api_url).rstrip("/")
        self.chunk_size = chunk_size or settings.batch_chunk_size
        self.ttl_seconds = settings.totals_cache_ttl if ttl_seconds is None else ttl_seconds

    async def fetch_live_counters(self, universe_ids: List[int]) -> List[Dict[str, Any]]:
        """One batch request for the live counters of up to ``chunk_size`` ids."""
        if not universe_ids:
            return []

        ids = ",".join(str(uid) for uid in universe_ids)
        data = await self.client.get_json(f"{self.games_api_url}/v1/games?universeIds={ids}")
        if not isinstance(data, dict) or not isinstance(data.get("data"), list):
            return []
        return [row for row in data["data"] if isinstance(row, dict)]

    async def compute_totals(self, payload: Iterable[OwnedEntry], notify: bool = False) -> Totals:
        universe_ids = []
        for entry in payload:
            universe_id = to_int(entry.universe_id)
            if universe_id and universe_id > 0:
                universe_ids.append(universe_id)

        total_playing = 0
        total_visits = 0
        for chunk in chunk_numbers(universe_ids, self.chunk_size):
            for row in await self.fetch_live_counters(chunk):
                if notify:
                    logger.debug(f"[Totals] Loading {row.get('name', row.get('id'))}")
                total_playing += to_number(row.get("playing"))
                total_visits += to_number(row.get("visits"))

        return Totals(total_visits=int(total_visits), total_playing=int(total_playing))

    async def get_totals(self, user_id: int, notify: bool = False) -> Totals:
        """Cached totals for a user, recomputed when older than the totals TTL."""
        now = self.store.now()
        record = self.store.get_totals(user_id)
        if record is not None and record.is_fresh(now, self.ttl_seconds):
            return record.to_totals()

        generation = self.store.generation(user_id)
        payload = await self.owned_content.get_owned_payload(user_id)
        totals = await self.compute_totals(payload, notify=notify)

        if generation is not None:
            self.store.put_totals(
                user_id, totals.total_visits, totals.total_playing,
                timestamp=now, generation=generation
            )
        return totals
