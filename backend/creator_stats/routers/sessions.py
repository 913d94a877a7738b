"""Session lifecycle endpoints."""

from fastapi import APIRouter, BackgroundTasks, Depends

from creator_stats.dependencies import get_service
from creator_stats.services.game_info import GameInfoService

router = APIRouter()


@router.post("/{user_id}")
async def start_session(
    user_id: int,
    background_tasks: BackgroundTasks,
    service: GameInfoService = Depends(get_service)
):
    """Register a joining user; setup and first refresh run in the background."""
    service.begin_session(user_id)
    background_tasks.add_task(service.on_session_start, user_id)
    return {"user_id": user_id, "started": True}


@router.delete("/{user_id}")
async def end_session(
    user_id: int,
    service: GameInfoService = Depends(get_service)
):
    """Drop everything cached for a leaving user."""
    was_active = service.sessions.is_active(user_id)
    service.on_session_end(user_id)
    return {"user_id": user_id, "ended": was_active}
