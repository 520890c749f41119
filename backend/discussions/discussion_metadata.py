"""Recompute a discussion's denormalized summary from its posts."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Collection, Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from discussions.config import settings
from discussions.models.discussion import Discussion, Post


@dataclass(slots=True)
class DiscussionSummary:
    comment_count: int = 0
    participant_count: int = 0
    post_number_index: int = 0
    first_post_id: int | None = None
    last_post_id: int | None = None
    last_post_number: int | None = None
    last_posted_at: datetime | None = None
    last_posted_user_id: int | None = None


def _is_eligible(post: Any, excluded_types: Collection[str]) -> bool:
    return post.type not in excluded_types


def summarize_posts(posts: Iterable[Any], excluded_types: Collection[str] | None = None) -> DiscussionSummary:
    """Summary of a post set. Works on ORM rows and on planned posts alike.

    Counts every post whose type is not in `excluded_types` (defaults to
    `MERGE_EXCLUDED_POST_TYPES`). The last post is the highest-numbered one.
    """
    if excluded_types is None:
        excluded_types = settings.MERGE_EXCLUDED_POST_TYPES
    ordered = sorted(posts, key=lambda p: p.number)
    eligible = [p for p in ordered if _is_eligible(p, excluded_types)]
    summary = DiscussionSummary(
        comment_count=len(eligible),
        participant_count=len({p.user_id for p in eligible if p.user_id is not None}),
        post_number_index=ordered[-1].number if ordered else 0,
    )
    if ordered:
        first, last = ordered[0], ordered[-1]
        summary.first_post_id = first.id
        summary.last_post_id = last.id
        summary.last_post_number = last.number
        summary.last_posted_at = last.created_at
        summary.last_posted_user_id = last.user_id
    return summary


def apply_summary(discussion: Discussion, summary: DiscussionSummary) -> None:
    discussion.comment_count = summary.comment_count
    discussion.participant_count = summary.participant_count
    discussion.post_number_index = summary.post_number_index
    discussion.first_post_id = summary.first_post_id
    discussion.last_post_id = summary.last_post_id
    discussion.last_post_number = summary.last_post_number
    discussion.last_posted_at = summary.last_posted_at
    discussion.last_posted_user_id = summary.last_posted_user_id


async def load_posts(session: AsyncSession, discussion_id: int) -> list[Post]:
    return list(
        (
            await session.execute(
                select(Post)
                .where(Post.discussion_id == discussion_id)
                .order_by(Post.number.asc())
                .execution_options(populate_existing=True)
            )
        ).scalars().all()
    )


async def refresh_discussion_metadata(
    session: AsyncSession,
    discussion: Discussion,
    excluded_types: Collection[str] | None = None,
) -> DiscussionSummary:
    """Reload `discussion` and its posts from the store and rewrite the summary columns.

    Never incremental: cached counters are ignored and rebuilt from the rows.
    """
    await session.flush()
    await session.refresh(discussion)
    summary = summarize_posts(await load_posts(session, discussion.id), excluded_types)
    apply_summary(discussion, summary)
    await session.flush()
    return summary
