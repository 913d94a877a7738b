from fastapi import Request

from creator_stats.services.game_info import GameInfoService


def get_service(request: Request) -> GameInfoService:
    """Dependency to get the service the app was created with."""
    return request.app.state.game_info
