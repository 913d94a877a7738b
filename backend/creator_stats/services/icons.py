"""Icon lookup with a process-wide cache."""

import logging
from typing import Dict, Iterable, List, Optional

from creator_stats.config import settings
from creator_stats.schemas import ContentEntry
from creator_stats.services.http_client import JsonHttpClient
from creator_stats.services.pagination import chunk_numbers
from creator_stats.utils import to_int

logger = logging.getLogger(__name__)


class IconResolver:
    """Resolves icon URLs for universe ids.

    Icons rarely change, so resolved URLs are kept for the life of the process
    and never expire.
    """

    def __init__(
        self,
        client: JsonHttpClient,
        thumbnails_api_url: str = None,
        chunk_size: int = None,
        icon_size: str = None
    ):
        self.client = client
        self.thumbnails_api_url = (thumbnails_api_url or settings.thumbnails_api_url).rstrip("/")
        self.chunk_size = chunk_size or settings.batch_chunk_size
        self.icon_size = icon_size or settings.icon_size
        self._icons: Dict[int, str] = {}

    @property
    def icon_cache(self) -> Dict[int, str]:
        """Snapshot of the icon cache."""
        return dict(self._icons)

    def cached_icon(self, universe_id: int) -> Optional[str]:
        return self._icons.get(universe_id)

    def _icons_url(self, universe_ids: Iterable[int]) -> str:
        ids = ",".join(str(uid) for uid in universe_ids)
        return (
            f"{self.thumbnails_api_url}/v1/games/icons?universeIds={ids}"
            f"&size={self.icon_size}&format=Png&isCircular=false"
        )

    async def fetch_icon(self, universe_id: int) -> Optional[str]:
        """Single-id lookup, used when the batch lookup missed an id."""
        cached = self._icons.get(universe_id)
        if cached:
            return cached

        data = await self.client.get_json(self._icons_url([universe_id]))
        if not isinstance(data, dict) or not isinstance(data.get("data"), list) or not data["data"]:
            return None
        row = data["data"][0]
        if not isinstance(row, dict):
            return None

        image_url = row.get("imageUrl")
        if isinstance(image_url, str) and image_url:
            self._icons[universe_id] = image_url
            return image_url
        return None

    async def _fetch_batch(self, universe_ids: List[int]) -> int:
        data = await self.client.get_json(self._icons_url(universe_ids))
        if not isinstance(data, dict) or not isinstance(data.get("data"), list):
            return 0

        found = 0
        for row in data["data"]:
            if not isinstance(row, dict):
                continue
            universe_id = to_int(row.get("targetId"))
            image_url = row.get("imageUrl")
            if universe_id and isinstance(image_url, str) and image_url:
                self._icons[universe_id] = image_url
                found += 1
        return found

    async def fill_icons(self, entries: List[ContentEntry]) -> None:
        """Set ``image_url`` on every entry, "" when it cannot be resolved."""
        missing = list(dict.fromkeys(
            entry.universe_id for entry in entries if entry.universe_id not in self._icons
        ))

        for chunk in chunk_numbers(missing, self.chunk_size):
            await self._fetch_batch(chunk)

        unresolved = 0
        for entry in entries:
            image_url = self._icons.get(entry.universe_id) or await self.fetch_icon(entry.universe_id)
            if not image_url:
                unresolved += 1
            entry.image_url = image_url or ""

        if unresolved:
            logger.debug(f"[Icons] {unresolved} of {len(entries)} icons could not be resolved")
