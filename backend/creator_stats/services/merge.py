"""Merging content lists and building the cached payload."""

from typing import Iterable, List

from creator_stats.schemas import ContentEntry, OwnedEntry, OwnedPayload


def merge_unique_by_identity(
    first: Iterable[ContentEntry],
    second: Iterable[ContentEntry]
) -> List[ContentEntry]:
    """Concatenate two lists keeping the first entry seen for each universe id."""
    seen = set()
    merged = []
    for source in (first, second):
        for entry in source:
            if entry.universe_id in seen:
                continue
            seen.add(entry.universe_id)
            merged.append(entry)
    return merged


def build_owned_payload(entries: Iterable[ContentEntry]) -> OwnedPayload:
    """Project entries into the immutable payload, defaulting missing fields."""
    return tuple(
        OwnedEntry(
            universe_id=entry.universe_id,
            root_place_id=entry.root_place_id or 0,
            image_url=entry.image_url or "",
            name=entry.name or "",
            description=entry.description or "",
            visits=entry.visits or 0,
        )
        for entry in entries
    )
