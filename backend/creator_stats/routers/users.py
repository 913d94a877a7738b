"""Per-user content, selection and totals endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from creator_stats.dependencies import get_service
from creator_stats.services.game_info import GameInfoService

router = APIRouter()


class SelectRequest(BaseModel):
    """Request to select a piece of owned content."""
    universe_id: int


def require_session(service: GameInfoService, user_id: int) -> None:
    if not service.sessions.is_active(user_id):
        raise HTTPException(status_code=404, detail=f"No active session for user {user_id}")


@router.get("/{user_id}/content")
async def get_owned_content(
    user_id: int,
    service: GameInfoService = Depends(get_service)
):
    """All owned content, cached only while the user has a session. Empty on upstream failure."""
    return list(await service.get_owned_payload(user_id))


@router.get("/{user_id}/current")
async def get_current_selection(
    user_id: int,
    service: GameInfoService = Depends(get_service)
):
    """The user's currently selected content, or null."""
    require_session(service, user_id)
    return await service.get_current_selection(user_id)


@router.post("/{user_id}/select")
async def select_content(
    user_id: int,
    request: SelectRequest,
    service: GameInfoService = Depends(get_service)
):
    """Select owned content as the user's current one."""
    require_session(service, user_id)
    return await service.try_select(user_id, request.universe_id)


@router.post("/{user_id}/refresh")
async def request_refresh(
    user_id: int,
    notify: bool = False,
    service: GameInfoService = Depends(get_service)
):
    """Queue a background totals refresh."""
    require_session(service, user_id)
    return {"queued": service.request_refresh(user_id, notify)}


@router.get("/{user_id}/totals")
async def get_totals(
    user_id: int,
    service: GameInfoService = Depends(get_service)
):
    """Total visits and players across owned content."""
    require_session(service, user_id)
    return await service.get_totals(user_id)


@router.get("/{user_id}/info")
async def get_info(
    user_id: int,
    service: GameInfoService = Depends(get_service)
):
    """Basic per-session info."""
    require_session(service, user_id)
    info = service.get_info(user_id)
    info["loaded"] = service.sessions.is_loaded(user_id)
    return info
