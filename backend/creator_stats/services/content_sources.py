"""Fetchers for content a user owns directly or through development groups."""

import logging
from typing import Any, Iterable, List

from creator_stats.config import settings
from creator_stats.schemas import ContentEntry
from creator_stats.services.http_client import JsonHttpClient
from creator_stats.services.pagination import fetch_all_pages
from creator_stats.utils import to_int

logger = logging.getLogger(__name__)

# Role names are free text, so match broadly: a false positive only costs a fetch
DEVELOPMENT_ROLE_KEYWORDS = (
    "developer",
    "contributor",
    "coowner",
    "co-owner",
    "scripter",
    "builder",
    "modeler",
    "admin",
    "development team",
)


def is_development_role(role_name: Any, is_owner: bool = False) -> bool:
    """True when the user owns the group or their role name looks like a dev role."""
    if is_owner:
        return True
    if not isinstance(role_name, str):
        return False
    lowered = role_name.lower()
    return any(keyword in lowered for keyword in DEVELOPMENT_ROLE_KEYWORDS)


def _text(value: Any):
    return value if isinstance(value, str) else None


def project_rows(rows: Iterable[Any]) -> List[ContentEntry]:
    """Convert listing rows into ContentEntry, skipping rows without a usable id."""
    entries = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        universe_id = to_int(row.get("id"))
        if universe_id is None or universe_id <= 0:
            continue
        entries.append(ContentEntry(
            universe_id=universe_id,
            name=_text(row.get("name")),
            description=_text(row.get("description")),
            visits=to_int(row.get("visits")),
            root_place_id=to_int(row.get("rootPlaceId")),
        ))
    return entries


class ContentSourceFetcher:
    """Fetches owned content listings from the games and groups APIs."""

    def __init__(
        self,
        client: JsonHttpClient,
        games_api_url: str = None,
        groups_api_url: str = None,
        page_limit: int = None,
        access_filter: int = None
    ):
        self.client = client
        self.games_api_url = (games_api_url or settings.games_api_url).rstrip("/")
        self.groups_api_url = (groups_api_url or settings.groups_api_url).rstrip("/")
        self.page_limit = page_limit or settings.games_page_limit
        self.access_filter = settings.games_access_filter if access_filter is None else access_filter

    def _games_listing_url(self, owner_kind: str, owner_id: int) -> str:
        return (
            f"{self.games_api_url}/v2/{owner_kind}/{owner_id}/games"
            f"?accessFilter={self.access_filter}&limit={self.page_limit}&sortOrder=Asc"
        )

    async def fetch_owned_content(self, user_id: int) -> List[ContentEntry]:
        """Public content the user created directly, across all pages."""
        rows = await fetch_all_pages(self.client, self._games_listing_url("users", user_id))
        return project_rows(rows)

    async def fetch_group_content(self, group_id: int) -> List[ContentEntry]:
        """Public content owned by a group, across all pages."""
        rows = await fetch_all_pages(self.client, self._games_listing_url("groups", group_id))
        return project_rows(rows)

    async def eligible_group_ids(self, user_id: int) -> List[int]:
        """Groups where the user is the owner or holds a development role."""
        data = await self.client.get_json(f"{self.groups_api_url}/v1/users/{user_id}/groups/roles")
        if not isinstance(data, dict) or not isinstance(data.get("data"), list):
            return []

        group_ids = []
        for row in data["data"]:
            if not isinstance(row, dict):
                continue
            group = row.get("group")
            role = row.get("role")
            group_id = to_int(group.get("id")) if isinstance(group, dict) else None
            role_name = role.get("name") if isinstance(role, dict) else None
            is_owner = row.get("isOwner") is True

            if group_id and group_id > 0 and is_development_role(role_name, is_owner):
                group_ids.append(group_id)

        return group_ids

    async def fetch_group_eligible_content(self, user_id: int) -> List[ContentEntry]:
        """Content of every eligible group, concatenated in group order."""
        entries: List[ContentEntry] = []
        group_ids = await self.eligible_group_ids(user_id)
        for group_id in group_ids:
            entries.extend(await self.fetch_group_content(group_id))
        if group_ids:
            logger.debug(f"User {user_id}: {len(entries)} entries from {len(group_ids)} groups")
        return entries
