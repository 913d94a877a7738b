"""
Pytest fixtures for creator_stats tests: a mocked upstream API, a fake clock
and in-memory collaborators.
"""
import os
import sys
from typing import Dict, List

import httpx
import pytest

# Add backend directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from creator_stats.services.cache import UserCacheStore
from creator_stats.services.content_sources import ContentSourceFetcher
from creator_stats.services.game_info import GameInfoService
from creator_stats.services.http_client import JsonHttpClient
from creator_stats.services.icons import IconResolver
from creator_stats.services.owned_content import OwnedContentService
from creator_stats.services.totals import TotalsAggregator

GAMES_URL = "https://games.test"
GROUPS_URL = "https://groups.test"
THUMBS_URL = "https://thumbs.test"

MILESTONES = {
    "OneThousandVisits": 1_000,
    "TenThousandVisits": 10_000,
    "OneHundredThousandVisits": 100_000,
    "OneMillionVisits": 1_000_000,
}


def game_row(universe_id, name=None, visits=0, root_place_id=None):
    return {
        "id": universe_id,
        "name": name or f"Game {universe_id}",
        "description": f"About game {universe_id}",
        "visits": visits,
        "rootPlaceId": root_place_id or universe_id * 10,
    }


class FakeUpstream:
    """Mocked games, groups and thumbnails APIs, routed by host and path."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.user_games: Dict[int, List[list]] = {}   # user id -> pages of rows
        self.group_games: Dict[int, List[list]] = {}  # group id -> pages of rows
        self.group_roles: Dict[int, list] = {}        # user id -> role rows
        self.icons: Dict[int, str] = {}
        self.batch_icon_misses = set()                # ids left out of multi-id icon responses
        self.counters: Dict[int, dict] = {}

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def count(self, host: str, path_prefix: str = "") -> int:
        return sum(
            1 for r in self.requests
            if r.url.host == host and r.url.path.startswith(path_prefix)
        )

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        parts = request.url.path.strip("/").split("/")
        params = request.url.params

        if host == "games.test" and parts[:2] == ["v2", "users"]:
            return self._page(self.user_games.get(int(parts[2]), []), params)
        if host == "games.test" and parts[:2] == ["v2", "groups"]:
            return self._page(self.group_games.get(int(parts[2]), []), params)
        if host == "games.test" and parts == ["v1", "games"]:
            ids = [int(x) for x in params["universeIds"].split(",")]
            rows = [dict(id=uid, **self.counters[uid]) for uid in ids if uid in self.counters]
            return httpx.Response(200, json={"data": rows})
        if host == "groups.test":
            return httpx.Response(200, json={"data": self.group_roles.get(int(parts[2]), [])})
        if host == "thumbs.test":
            ids = [int(x) for x in params["universeIds"].split(",")]
            if len(ids) == 1:
                url = self.icons.get(ids[0])
                return httpx.Response(200, json={"data": [{"imageUrl": url}] if url else []})
            rows = [
                {"targetId": uid, "state": "Completed", "imageUrl": self.icons[uid]}
                for uid in ids if uid in self.icons and uid not in self.batch_icon_misses
            ]
            return httpx.Response(200, json={"data": rows})
        return httpx.Response(404)

    def _page(self, pages: List[list], params) -> httpx.Response:
        index = int(params.get("cursor", "page-0").split("-")[1])
        rows = pages[index] if index < len(pages) else []
        next_cursor = f"page-{index + 1}" if index + 1 < len(pages) else None
        return httpx.Response(200, json={"data": rows, "nextPageCursor": next_cursor})


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Stands in for asyncio.sleep and records requested delays."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeRewards:
    def __init__(self):
        self.awarded: List[tuple] = []

    async def award(self, user_id: int, reward_name: str) -> bool:
        if (user_id, reward_name) in self.awarded:
            return False
        self.awarded.append((user_id, reward_name))
        return True

    def names_for(self, user_id: int) -> List[str]:
        return [name for uid, name in self.awarded if uid == user_id]


class FakeProfiles:
    def __init__(self):
        self.selected: Dict[int, int] = {}
        self.profiles = set()
        self.mirrored: List[tuple] = []

    async def ensure_profile(self, user_id: int) -> None:
        self.profiles.add(user_id)

    async def has_profile(self, user_id: int) -> bool:
        return user_id in self.profiles

    async def get_selected(self, user_id: int):
        return self.selected.get(user_id)

    async def set_selected(self, user_id: int, universe_id) -> bool:
        if user_id not in self.profiles:
            return False
        self.selected[user_id] = universe_id
        return True

    async def publish_totals(self, user_id: int, total_visits: int, total_playing: int) -> bool:
        self.mirrored.append((user_id, total_visits, total_playing))
        return True


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def retry_sleep():
    return RecordingSleep()


@pytest.fixture
def client(upstream, retry_sleep):
    return JsonHttpClient(retry_delays=[0.5, 1.0, 2.0], transport=upstream.transport, sleep=retry_sleep)


@pytest.fixture
def store(clock):
    return UserCacheStore(clock)


@pytest.fixture
def fetcher(client):
    return ContentSourceFetcher(client, games_api_url=GAMES_URL, groups_api_url=GROUPS_URL)


@pytest.fixture
def icons(client):
    return IconResolver(client, thumbnails_api_url=THUMBS_URL, chunk_size=100)


@pytest.fixture
def owned_content(store, fetcher, icons):
    return OwnedContentService(store, fetcher, icons, ttl_seconds=60)


@pytest.fixture
def totals(store, owned_content, client):
    return TotalsAggregator(store, owned_content, client, games_api_url=GAMES_URL, chunk_size=100, ttl_seconds=55)


@pytest.fixture
def rewards():
    return FakeRewards()


@pytest.fixture
def profiles():
    return FakeProfiles()


@pytest.fixture
def service(store, owned_content, totals, rewards, profiles):
    return GameInfoService(
        store,
        owned_content,
        totals,
        rewards,
        profiles,
        milestones=MILESTONES,
        welcome_reward="Welcome",
        initial_refresh_delay=2.0,
        sleep=RecordingSleep()
    )
