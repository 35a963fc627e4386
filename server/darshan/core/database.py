"""
Async SQLAlchemy engine and sessions for the darshan store.

Requests get one session each through ``get_db``. Realtime pulls, the
readiness probe and the workers open short sessions with ``open_session``
against whichever factory the app was built with.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from .config import settings


class Base(DeclarativeBase):
    """Declarative base shared by temples, bookings, queue rows and the other tables."""


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Engine for ``database_url``; SQLite shares a single connection across sessions."""
    if database_url.startswith("sqlite"):
        return create_async_engine(
            database_url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(database_url, echo=echo, pool_pre_ping=True)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    # Rows stay readable after commit so events can be built from them
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False, autoflush=False)


engine = build_engine(settings.database_url, echo=settings.debug and settings.log_level == "DEBUG")
async_session_factory = build_session_factory(engine)


@asynccontextmanager
async def open_session(factory: Optional[async_sessionmaker] = None) -> AsyncIterator[AsyncSession]:
    """Session rolled back when the block raises; committing is the caller's job."""
    async with (factory or async_session_factory)() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request."""
    async with open_session() as session:
        yield session


async def init_db(bind: Optional[AsyncEngine] = None) -> None:
    """Create any missing tables; migrations own the schema in production."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
