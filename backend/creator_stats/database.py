"""Async engine, session factory and table creation for the profile store."""

import os

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from creator_stats.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


class Base(DeclarativeBase):
    pass


def ensure_database_dir(database_url) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return
    database = url.database
    if not database or database == ":memory:" or database.startswith("file:"):
        return
    directory = os.path.dirname(database)
    if directory:
        os.makedirs(directory, exist_ok=True)


async def create_tables(bind=None):
    """Create all tables on ``bind``, or on the configured engine."""
    from creator_stats.models import profile, reward  # noqa: F401
    bind = bind if bind is not None else engine
    ensure_database_dir(bind.url)
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
