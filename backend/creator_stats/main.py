import asyncio
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from creator_stats.config import settings
from creator_stats.database import create_tables
from creator_stats.routers import sessions, users
from creator_stats.services.game_info import GameInfoService, get_game_info_service

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)


def create_app(service: GameInfoService = None, init_database: bool = True) -> FastAPI:
    """Build the API around ``service`` (the process-wide one by default)."""
    game_info = service or get_game_info_service()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: create tables and start the periodic refresh
        if init_database:
            await create_tables()
        refresh_task = asyncio.create_task(game_info.run_periodic_refresh(settings.refresh_interval))
        yield
        # Shutdown: stop background work
        refresh_task.cancel()
        try:
            await refresh_task
        except asyncio.CancelledError:
            pass
        await game_info.shutdown()

    app = FastAPI(
        title=settings.app_name,
        description="Cached owned content statistics for creators",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.game_info = game_info

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(sessions.router, prefix="/api/sessions", tags=["Sessions"])
    app.include_router(users.router, prefix="/api/users", tags=["Users"])

    @app.get("/api/health")
    async def health_check():
        return {"status": "healthy", "service": settings.app_name}

    @app.get("/api/queue")
    async def queue_status():
        return {
            "state": game_info.queue.state.value,
            "pending": len(game_info.queue.pending),
            "processed": game_info.queue.processed,
            "failed": game_info.queue.failed,
        }

    return app


app = create_app()
