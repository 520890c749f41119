"""Async SQLAlchemy engine + session factory."""
from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from discussions.config import settings

T = TypeVar("T")

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=(settings.APP_ENV == "development"),
    pool_size=10,
    max_overflow=20,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base used by all ORM models."""


async def get_session() -> AsyncSession:  # type: ignore[misc]
    """FastAPI dependency: yields an async session."""
    async with async_session_factory() as session:
        yield session


async def run_in_transaction(session: AsyncSession, work: Callable[[], Awaitable[T]]) -> T:
    """Run `work` and commit; any exception rolls the whole unit back and propagates."""
    try:
        result = await work()
        await session.commit()
    except BaseException:
        await session.rollback()
        raise
    return result
