"""Data shapes shared by the services and the API."""

from typing import Optional, Tuple
from pydantic import BaseModel, ConfigDict


class ContentEntry(BaseModel):
    """A piece of content parsed from an upstream listing row.

    Rebuilt on every cache refresh. Only ``image_url`` is filled in after
    construction, once icons have been resolved.
    """
    universe_id: int
    name: Optional[str] = None
    description: Optional[str] = None
    root_place_id: Optional[int] = None
    visits: Optional[int] = None
    image_url: Optional[str] = None


class OwnedEntry(BaseModel):
    """Lightweight, immutable projection of a ContentEntry handed to callers."""
    model_config = ConfigDict(frozen=True)

    universe_id: int
    root_place_id: int = 0
    image_url: str = ""
    name: str = ""
    description: str = ""
    visits: int = 0


# Ordered, unique by universe_id
OwnedPayload = Tuple[OwnedEntry, ...]


class Totals(BaseModel):
    """Summed live counters across everything a user owns."""
    model_config = ConfigDict(frozen=True)

    total_visits: int = 0
    total_playing: int = 0


class PendingJob(BaseModel):
    """A queued refresh for one user."""
    model_config = ConfigDict(frozen=True)

    user_id: int
    notify: bool = False


class SelectionResult(BaseModel):
    """Outcome of trying to select (equip) a piece of content."""
    success: bool
    reason: Optional[str] = None
    entry: Optional[OwnedEntry] = None
