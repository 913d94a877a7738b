"""Public facade: owned content, selection, totals and background refresh per user."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Tuple

from creator_stats.config import settings
from creator_stats.schemas import OwnedEntry, OwnedPayload, PendingJob, SelectionResult, Totals
from creator_stats.services.cache import UserCacheStore
from creator_stats.services.content_sources import ContentSourceFetcher
from creator_stats.services.http_client import JsonHttpClient
from creator_stats.services.icons import IconResolver
from creator_stats.services.owned_content import OwnedContentService
from creator_stats.services.profiles import ProfileService
from creator_stats.services.rewards import RewardService
from creator_stats.services.sessions import SessionRegistry
from creator_stats.services.totals import TotalsAggregator
from creator_stats.services.update_queue import UpdateQueue

logger = logging.getLogger(__name__)

SelectionListener = Callable[[int, OwnedEntry], Any]


class RewardIssuer(Protocol):
    async def award(self, user_id: int, reward_name: str) -> bool: ...


class ProfileStore(Protocol):
    async def ensure_profile(self, user_id: int) -> None: ...
    async def has_profile(self, user_id: int) -> bool: ...
    async def get_selected(self, user_id: int) -> Optional[int]: ...
    async def set_selected(self, user_id: int, universe_id: Optional[int]) -> bool: ...


class StatMirror(Protocol):
    async def publish_totals(self, user_id: int, total_visits: int, total_playing: int) -> Any: ...


class GameInfoService:
    """Entry point used by the request handlers and lifecycle hooks.

    Public methods never raise: failures are logged and a best-effort value
    (empty payload, zero totals, None) is returned instead.
    """

    def __init__(
        self,
        store: UserCacheStore,
        owned_content: OwnedContentService,
        totals: TotalsAggregator,
        rewards: RewardIssuer,
        profiles: ProfileStore,
        mirror: StatMirror = None,
        sessions: SessionRegistry = None,
        milestones: Dict[str, int] = None,
        welcome_reward: str = None,
        initial_refresh_delay: float = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.store = store
        self.owned_content = owned_content
        self.totals = totals
        self.rewards = rewards
        self.profiles = profiles
        self.mirror = mirror if mirror is not None else profiles
        self.sessions = sessions or SessionRegistry()
        self.milestones = dict(settings.milestones if milestones is None else milestones)
        self.welcome_reward = welcome_reward or settings.welcome_reward
        self.initial_refresh_delay = (
            settings.initial_refresh_delay if initial_refresh_delay is None else initial_refresh_delay
        )
        self._sleep = sleep
        self._selection_listeners: List[SelectionListener] = []
        self.queue = UpdateQueue(self._process_job, self.sessions.is_active)

    # Listeners
    def add_selection_listener(self, listener: SelectionListener) -> None:
        """Register a callback fired with (user_id, entry) when a selection is shown."""
        self._selection_listeners.append(listener)

    async def _notify_selection(self, user_id: int, entry: OwnedEntry) -> None:
        for listener in self._selection_listeners:
            try:
                result = listener(user_id, entry)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception(f"Selection listener failed for user {user_id}")

    # Reads
    def get_info(self, user_id: int) -> Dict[str, Any]:
        return self.store.ensure_info(user_id)

    async def get_owned_payload(self, user_id: int) -> OwnedPayload:
        try:
            return await self.owned_content.get_owned_payload(user_id)
        except Exception:
            logger.exception(f"Failed to load owned content for user {user_id}")
            return ()

    async def get_current_selection(self, user_id: int) -> Optional[OwnedEntry]:
        """The cached entry for the user's selected universe, if they own it."""
        try:
            universe_id = await self.profiles.get_selected(user_id)
            if not universe_id:
                return None

            # Build the cache once if there is none; a stale one is still searched
            payload = self.owned_content.cached_payload(user_id)
            if payload is None:
                payload = await self.owned_content.get_owned_payload(user_id)

            return next((entry for entry in payload if entry.universe_id == universe_id), None)
        except Exception:
            logger.exception(f"Failed to resolve current selection for user {user_id}")
            return None

    async def get_totals(self, user_id: int) -> Totals:
        try:
            return await self.totals.get_totals(user_id)
        except Exception:
            logger.exception(f"Failed to compute totals for user {user_id}")
            return Totals()

    # Selection
    async def try_select(self, user_id: int, universe_id: Any) -> SelectionResult:
        """Validate ownership and make ``universe_id`` the user's current selection."""
        try:
            parsed = int(universe_id)
        except (TypeError, ValueError):
            return SelectionResult(success=False, reason="invalid_id")
        if parsed <= 0:
            return SelectionResult(success=False, reason="invalid_id")

        try:
            if not await self.profiles.has_profile(user_id):
                return SelectionResult(success=False, reason="no_profile")

            if await self.profiles.get_selected(user_id) == parsed:
                return SelectionResult(success=False, reason="already_selected")

            # The cache may predate the content, so refresh once before rejecting
            if not self.owned_content.owns(user_id, parsed):
                payload = await self.owned_content.get_owned_payload(user_id)
                if not any(entry.universe_id == parsed for entry in payload):
                    return SelectionResult(success=False, reason="not_owned")

            await self.profiles.set_selected(user_id, parsed)

            entry = await self.get_current_selection(user_id)
            if entry is None:
                await self.owned_content.get_owned_payload(user_id)
                entry = await self.get_current_selection(user_id)
        except Exception:
            logger.exception(f"Selection of {universe_id} failed for user {user_id}")
            return SelectionResult(success=False, reason="error")

        if entry is not None:
            await self._notify_selection(user_id, entry)
        else:
            logger.warning(f"User {user_id} selected {parsed} but no cached entry was found")

        return SelectionResult(success=True, entry=entry)

    # Background refresh
    def request_refresh(self, user_id: int, notify: bool = False) -> bool:
        """Queue an asynchronous totals refresh for an active user."""
        if not self.sessions.is_active(user_id):
            return False
        self.queue.enqueue(user_id, notify)
        return True

    async def _process_job(self, job: PendingJob) -> None:
        totals = await self.totals.get_totals(job.user_id, notify=job.notify)

        for reward_name, threshold in self.milestones.items():
            if totals.total_visits >= threshold:
                await self.rewards.award(job.user_id, reward_name)

        await self.mirror.publish_totals(job.user_id, totals.total_visits, totals.total_playing)

    def refresh_all(self) -> int:
        """Periodic tick: expire totals and queue a quiet refresh for every active user."""
        users = self.sessions.active_users()
        for user_id in users:
            self.store.clear_totals(user_id)
            self.queue.enqueue(user_id, notify=False)
        return len(users)

    async def run_periodic_refresh(self, interval_seconds: float = None) -> None:
        """Call ``refresh_all`` every ``interval_seconds`` until cancelled."""
        interval = settings.refresh_interval if interval_seconds is None else interval_seconds
        logger.info(f"Periodic refresh started (every {interval}s)")
        try:
            while True:
                await self._sleep(interval)
                try:
                    queued = self.refresh_all()
                    if queued:
                        logger.debug(f"Periodic refresh queued {queued} users")
                except Exception:
                    logger.exception("Periodic refresh tick failed")
        finally:
            logger.info("Periodic refresh stopped")

    # Lifecycle
    def begin_session(self, user_id: int) -> None:
        """Mark the user active and open their cache entries."""
        self.sessions.start(user_id)
        self.store.open(user_id)

    async def on_session_start(self, user_id: int) -> List[Tuple[int, OwnedEntry]]:
        """Set up a joining user and queue their first refresh.

        Returns the current selections of the other active users so the caller
        can show them to the new user.
        """
        self.begin_session(user_id)
        others: List[Tuple[int, OwnedEntry]] = []

        try:
            await self.rewards.award(user_id, self.welcome_reward)
            await self.profiles.ensure_profile(user_id)
            self.store.ensure_info(user_id)

            for other_id in self.sessions.active_users():
                if other_id == user_id:
                    continue
                entry = await self.get_current_selection(other_id)
                if entry is not None:
                    others.append((other_id, entry))

            await self._sleep(self.initial_refresh_delay)
            if not self.sessions.is_active(user_id):
                return others

            self.request_refresh(user_id, notify=True)

            current = await self.get_current_selection(user_id)
            if current is not None:
                await self._notify_selection(user_id, current)
        except Exception:
            logger.exception(f"Session start failed for user {user_id}")

        self.sessions.mark_loaded(user_id)
        logger.info(f"Session started for user {user_id}")
        return others

    def on_session_end(self, user_id: int) -> None:
        """Forget everything cached for the user and cancel their queued jobs."""
        self.sessions.end(user_id)
        self.store.evict(user_id)
        self.queue.remove_user(user_id)
        logger.info(f"Session ended for user {user_id}")

    async def shutdown(self) -> None:
        await self.queue.stop()


def build_game_info_service(
    transport=None,
    session_factory=None,
    clock=None
) -> GameInfoService:
    """Wire the service from settings."""
    client = JsonHttpClient(transport=transport)
    store = UserCacheStore(clock) if clock is not None else UserCacheStore()
    owned_content = OwnedContentService(store, ContentSourceFetcher(client), IconResolver(client))
    totals = TotalsAggregator(store, owned_content, client)
    profiles = ProfileService(session_factory) if session_factory is not None else ProfileService()
    rewards = RewardService(session_factory) if session_factory is not None else RewardService()
    return GameInfoService(store, owned_content, totals, rewards, profiles)


_service: Optional[GameInfoService] = None


def get_game_info_service() -> GameInfoService:
    """Get the process-wide service instance, creating it if needed."""
    global _service
    if _service is None:
        _service = build_game_info_service()
    return _service
