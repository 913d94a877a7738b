"""Cursor pagination and id batching for the upstream APIs."""

from typing import Any, Dict, List, Sequence, TypeVar

import httpx

from creator_stats.services.http_client import JsonHttpClient

T = TypeVar("T")


async def fetch_all_pages(client: JsonHttpClient, base_url: str) -> List[Dict[str, Any]]:
    """Follow ``nextPageCursor`` from ``base_url`` and collect every ``data`` row.

    Stops on a failed or malformed page, a missing row list, or a missing or
    empty next cursor. There is no page cap; the upstream is trusted to end.
    """
    results: List[Dict[str, Any]] = []
    cursor = None

    while True:
        url = httpx.URL(base_url)
        if cursor:
            url = url.copy_add_param("cursor", cursor)

        page = await client.get_json(str(url))
        if not isinstance(page, dict):
            break

        rows = page.get("data")
        if not isinstance(rows, list):
            break
        results.extend(rows)

        next_cursor = page.get("nextPageCursor")
        if not isinstance(next_cursor, str) or not next_cursor:
            break
        cursor = next_cursor

    return results


def chunk_numbers(values: Sequence[T], chunk_size: int) -> List[List[T]]:
    """Split ``values`` into consecutive chunks of at most ``chunk_size``."""
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return [list(values[i:i + chunk_size]) for i in range(0, len(values), chunk_size)]
