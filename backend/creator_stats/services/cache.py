"""Per-user in-memory cache tables with explicit lifecycle."""

import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from creator_stats.schemas import OwnedEntry, OwnedPayload, Totals


class TimestampedRecord:
    """A cache record stamped with a monotonic clock reading."""

    def __init__(self, timestamp: float):
        self.timestamp = timestamp

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return (now - self.timestamp) < ttl_seconds


class ContentCacheRecord(TimestampedRecord):
    """Owned content payload as of ``timestamp``."""

    def __init__(self, timestamp: float, payload: Iterable[OwnedEntry]):
        super().__init__(timestamp)
        self.payload: OwnedPayload = tuple(payload)


class TotalsCacheRecord(TimestampedRecord):
    """Summed live counters as of ``timestamp``."""

    def __init__(self, timestamp: float, total_visits: int, total_playing: int):
        super().__init__(timestamp)
        self.total_visits = total_visits
        self.total_playing = total_playing

    def to_totals(self) -> Totals:
        return Totals(total_visits=self.total_visits, total_playing=self.total_playing)


class UserCacheStore:
    """Cache tables keyed by user id.

    Only users with an open session are cached. ``open`` hands out a
    generation number and ``evict`` closes it; writes for a closed user, or
    tagged with a generation from an earlier session, are dropped. Reads and
    writes never suspend, so under asyncio they need no lock.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._generations: Dict[int, int] = {}
        self._next_generation = 0
        self._info: Dict[int, Dict[str, Any]] = {}
        self._content: Dict[int, ContentCacheRecord] = {}
        self._totals: Dict[int, TotalsCacheRecord] = {}
        self._evict_hooks: List[Callable[[int], None]] = []

    def now(self) -> float:
        return self.clock()

    # Sessions
    def open(self, user_id: int) -> int:
        """Start caching for a user. Reopening keeps the current generation."""
        if user_id not in self._generations:
            self._next_generation += 1
            self._generations[user_id] = self._next_generation
        return self._generations[user_id]

    def is_open(self, user_id: int) -> bool:
        return user_id in self._generations

    def generation(self, user_id: int) -> Optional[int]:
        """Current generation of an open user, None when closed."""
        return self._generations.get(user_id)

    def _accepts(self, user_id: int, generation: Optional[int]) -> bool:
        current = self._generations.get(user_id)
        if current is None:
            return False
        return generation is None or generation == current

    # Basic info
    def ensure_info(self, user_id: int) -> Dict[str, Any]:
        """Get (creating if needed) the basic info record for a user."""
        info = self._info.get(user_id)
        if info is None:
            info = {"user_id": user_id, "created_at": self.now()}
            if self.is_open(user_id):
                self._info[user_id] = info
        return dict(info)

    # Content
    def get_content(self, user_id: int) -> Optional[ContentCacheRecord]:
        return self._content.get(user_id)

    def put_content(
        self,
        user_id: int,
        payload: Iterable[OwnedEntry],
        timestamp: float = None,
        generation: int = None
    ) -> ContentCacheRecord:
        record = ContentCacheRecord(self.now() if timestamp is None else timestamp, payload)
        if self._accepts(user_id, generation):
            self._content[user_id] = record
        return record

    # Totals
    def get_totals(self, user_id: int) -> Optional[TotalsCacheRecord]:
        return self._totals.get(user_id)

    def put_totals(
        self,
        user_id: int,
        total_visits: int,
        total_playing: int,
        timestamp: float = None,
        generation: int = None
    ) -> TotalsCacheRecord:
        record = TotalsCacheRecord(
            self.now() if timestamp is None else timestamp,
            total_visits,
            total_playing
        )
        if self._accepts(user_id, generation):
            self._totals[user_id] = record
        return record

    def clear_totals(self, user_id: int) -> None:
        self._totals.pop(user_id, None)

    # Lifecycle
    def on_evict(self, hook: Callable[[int], None]) -> None:
        """Register a callback run whenever a user's entries are evicted."""
        self._evict_hooks.append(hook)

    def evict(self, user_id: int) -> bool:
        """Close the user and drop every entry held for them.

        Returns True if anything was removed.
        """
        self._generations.pop(user_id, None)
        removed = False
        for table in (self._info, self._content, self._totals):
            if table.pop(user_id, None) is not None:
                removed = True
        for hook in self._evict_hooks:
            hook(user_id)
        return removed

    def has_entries(self, user_id: int) -> bool:
        return user_id in self._info or user_id in self._content or user_id in self._totals

    def cached_users(self) -> List[int]:
        return sorted(set(self._info) | set(self._content) | set(self._totals))
