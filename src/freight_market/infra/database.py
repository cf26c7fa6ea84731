"""Async database engine and session management."""

import asyncio
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from freight_market.app.config import get_settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""
    pass


settings = get_settings()

_is_sqlite = "sqlite" in settings.database_url
_connect_args = {}
if _is_sqlite:
    _connect_args["check_same_thread"] = False

_engine_kwargs = {
    "echo": False,
    "connect_args": _connect_args,
}
if settings.is_memory_database:
    # One shared connection, otherwise every checkout sees an empty database
    _engine_kwargs["poolclass"] = StaticPool
elif not _is_sqlite:
    _engine_kwargs["pool_size"] = 5
    _engine_kwargs["max_overflow"] = 10

engine = create_async_engine(settings.database_url, **_engine_kwargs)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

# The in-memory store has a single connection, so request transactions
# must not interleave on it.
_session_gate = asyncio.Lock() if settings.is_memory_database else None


@asynccontextmanager
async def open_session():
    """Session outside the request cycle (startup seed, WebSocket handshakes)."""
    if _session_gate is None:
        async with async_session() as session:
            yield session
        return

    async with _session_gate:
        async with async_session() as session:
            yield session


async def get_db():
    """FastAPI dependency: yield an async database session."""
    async with open_session() as session:
        yield session


async def init_db():
    """Create all tables."""
    import freight_market.domain.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def reset_db(session: AsyncSession):
    """Delete every row of every table, children first."""
    for table in reversed(Base.metadata.sorted_tables):
        await session.execute(table.delete())
    await session.flush()
