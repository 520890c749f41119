"""Redirection records for merged-away discussions, and their resolution."""
from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from discussions.metrics import REDIRECTIONS_TOTAL
from discussions.models.discussion import Discussion, Post
from discussions.models.discussion_user import DiscussionUser
from discussions.models.redirection import Redirection

logger = logging.getLogger(__name__)

MAX_REDIRECT_HOPS = 16


async def redirect_and_delete(
    session: AsyncSession,
    *,
    sources: Iterable[Discussion],
    target: Discussion,
) -> list[Redirection]:
    """Record where each source went, then delete it.

    The redirection row is flushed before the delete so both land in the same
    transaction. The target itself is skipped if it appears in `sources`.
    """
    written: list[Redirection] = []
    for source in sources:
        if int(source.id) == int(target.id):
            continue

        redirection = Redirection(
            from_discussion_id=source.id,
            to_discussion_id=target.id,
            http_code=301,
        )
        session.add(redirection)
        await session.flush()

        await session.execute(delete(Post).where(Post.discussion_id == source.id))
        await session.execute(delete(DiscussionUser).where(DiscussionUser.discussion_id == source.id))
        await session.delete(source)
        await session.flush()

        written.append(redirection)
        logger.info("Discussion %s merged into %s and removed", source.id, target.id)

    if written:
        REDIRECTIONS_TOTAL.inc(len(written))
    return written


async def resolve_discussion_id(session: AsyncSession, discussion_id: int) -> int | None:
    """Live discussion id for `discussion_id`, following redirections; None if unknown."""
    current = int(discussion_id)
    visited: set[int] = set()
    for _ in range(MAX_REDIRECT_HOPS):
        exists = (
            await session.execute(select(Discussion.id).where(Discussion.id == current))
        ).scalar()
        if exists is not None:
            return current
        if current in visited:
            break
        visited.add(current)
        next_id = (
            await session.execute(
                select(Redirection.to_discussion_id).where(Redirection.from_discussion_id == current)
            )
        ).scalar()
        if next_id is None:
            return None
        current = int(next_id)
    logger.warning("Redirection chain from discussion %s does not terminate", discussion_id)
    return None
