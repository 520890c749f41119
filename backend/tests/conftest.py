from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import discussions.models  # noqa: F401
from discussions.db import Base
from discussions.discussion_metadata import apply_summary, summarize_posts
from discussions.models.discussion import Discussion, Post, PostType
from discussions.models.discussion_user import DiscussionUser
from discussions.models.redirection import Redirection

T0 = datetime(2024, 3, 1, 12, 0, 0)


def at(minutes: int) -> datetime:
    return T0 + timedelta(minutes=minutes)


def post(number: int, minute: int, user_id: int | None = 1, type: str = PostType.COMMENT) -> dict[str, Any]:
    return {"number": number, "created_at": at(minute), "user_id": user_id, "type": type}


class ForumDB:
    """A throwaway SQLite forum reached through aiosqlite."""

    def __init__(self, url: str) -> None:
        self.url = url
        self.engine = create_async_engine(url, poolclass=NullPool)
        self.sessions = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

    async def start(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def stop(self) -> None:
        await self.engine.dispose()

    async def add_discussion(self, title: str, posts: list[dict[str, Any]]) -> tuple[int, list[int]]:
        """Create a discussion with `posts`; returns its id and the post ids in given order."""
        async with self.sessions() as session:
            discussion = Discussion(title=title, user_id=posts[0]["user_id"] if posts else None)
            session.add(discussion)
            await session.flush()
            rows = [Post(discussion_id=discussion.id, **fields) for fields in posts]
            session.add_all(rows)
            await session.flush()
            apply_summary(discussion, summarize_posts(rows))
            await session.commit()
            return discussion.id, [p.id for p in rows]

    async def set_subscription(
        self,
        discussion_id: int,
        user_id: int,
        subscription: str | None,
        last_read_post_number: int | None = 1,
    ) -> None:
        async with self.sessions() as session:
            session.add(
                DiscussionUser(
                    discussion_id=discussion_id,
                    user_id=user_id,
                    subscription=subscription,
                    last_read_post_number=last_read_post_number,
                )
            )
            await session.commit()

    async def discussion(self, discussion_id: int) -> Discussion | None:
        async with self.sessions() as session:
            return (await session.execute(select(Discussion).where(Discussion.id == discussion_id))).scalar()

    async def numbers(self, discussion_id: int) -> dict[int, int]:
        """post id -> number for every post currently in the discussion."""
        async with self.sessions() as session:
            rows = (
                await session.execute(
                    select(Post.id, Post.number).where(Post.discussion_id == discussion_id)
                )
            ).all()
            return {int(pid): int(number) for pid, number in rows}

    async def subscriptions(self, user_id: int) -> list[tuple[int, str | None, int | None]]:
        async with self.sessions() as session:
            rows = (
                await session.execute(
                    select(
                        DiscussionUser.discussion_id,
                        DiscussionUser.subscription,
                        DiscussionUser.last_read_post_number,
                    )
                    .where(DiscussionUser.user_id == user_id)
                    .order_by(DiscussionUser.discussion_id)
                )
            ).all()
            return [tuple(row) for row in rows]

    async def redirections(self) -> list[tuple[int, int]]:
        async with self.sessions() as session:
            rows = (
                await session.execute(
                    select(Redirection.from_discussion_id, Redirection.to_discussion_id).order_by(
                        Redirection.from_discussion_id
                    )
                )
            ).all()
            return [tuple(row) for row in rows]


@pytest.fixture()
def forum_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'forum.db'}"


@pytest.fixture()
def run_forum(forum_url) -> Callable[[Callable[[ForumDB], Awaitable[Any]]], Any]:
    """Run an async scenario against a fresh forum database."""

    def runner(scenario: Callable[[ForumDB], Awaitable[Any]]) -> Any:
        async def main() -> Any:
            forum = ForumDB(forum_url)
            await forum.start()
            try:
                return await scenario(forum)
            finally:
                await forum.stop()

        return asyncio.run(main())

    return runner
