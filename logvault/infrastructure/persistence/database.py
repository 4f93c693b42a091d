"""Async engine and session factory."""

from pathlib import Path
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from logvault.config import DatabaseConfig


def resolve_sqlite_url(url: str) -> str:
    """Make a file-backed SQLite URL absolute and create its directory.

    Other URLs are returned unchanged.
    """
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite" or parsed.database in (None, "", ":memory:"):
        return url
    path = Path(parsed.database).expanduser().resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    return parsed.set(database=str(path)).render_as_string(hide_password=False)


def create_db_engine(config: DatabaseConfig) -> AsyncEngine:
    url = resolve_sqlite_url(config.url)
    kwargs: dict[str, Any] = {"echo": config.echo}
    if make_url(url).get_backend_name() == "sqlite":
        # aiosqlite must see a single connection or writes serialise badly
        kwargs.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
    else:
        kwargs.update(pool_pre_ping=True, pool_size=5, max_overflow=10)
    return create_async_engine(url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
