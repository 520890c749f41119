"""Merge several discussions into one target discussion.

Used by the merge API endpoint. A merge either previews the result
(`merge=False`, nothing written) or commits every structural change in a
single transaction:

- moved posts are parked above every live number, then compacted to 1..N
  (`date` ordering) or appended after the current maximum (`suffix` ordering)
- target summary columns are rebuilt from the store
- follow subscriptions move to the target
- each merged-away discussion gets a redirection row and is deleted

A `DiscussionMerged` event is dispatched only after the commit.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from discussions.config import settings
from discussions.db import run_in_transaction
from discussions.discussion_metadata import (
    DiscussionSummary,
    load_posts,
    refresh_discussion_metadata,
    summarize_posts,
)
from discussions.errors import DiscussionNotFound, MergeFailed, MergeForbidden
from discussions.events import DiscussionMerged, EventDispatcher
from discussions.features import SUBSCRIPTIONS, FeatureFlags
from discussions.metrics import GAP_FIXES_TOTAL, MERGE_FAILURES_TOTAL, MERGES_TOTAL, POSTS_RENUMBERED_TOTAL
from discussions.models.discussion import Discussion, Post
from discussions.permissions import Actor, MergePolicy, PermissionPolicy
from discussions.redirections import redirect_and_delete
from discussions.renumbering import (
    Assignment,
    gap_fix_assignments,
    park_offset,
    renumber_append,
    renumber_by_date,
)
from discussions.subscriptions import migrate_subscriptions
from discussions.translator import Translator
from discussions.validation import DefaultMergeValidator, MergeValidator

logger = logging.getLogger(__name__)


class Ordering(str, enum.Enum):
    DATE = "date"
    SUFFIX = "suffix"


@dataclass(slots=True)
class MergeCommand:
    actor: Actor
    discussion_id: int
    ids: list[int]
    merge: bool = False
    ordering: Ordering = Ordering.DATE


@dataclass(slots=True)
class PlannedPost:
    id: int
    discussion_id: int
    number: int
    created_at: datetime
    user_id: int | None
    type: str
    hidden_at: datetime | None = None

    @classmethod
    def from_post(cls, post: Post, *, number: int | None = None, discussion_id: int | None = None) -> PlannedPost:
        return cls(
            id=post.id,
            discussion_id=post.discussion_id if discussion_id is None else discussion_id,
            number=post.number if number is None else number,
            created_at=post.created_at,
            user_id=post.user_id,
            type=post.type,
            hidden_at=post.hidden_at,
        )


@dataclass(slots=True)
class MergeResult:
    discussion: Discussion
    committed: bool
    ordering: Ordering
    posts: list[PlannedPost]
    summary: DiscussionSummary
    merged_discussion_ids: list[int] = field(default_factory=list)
    moved_post_count: int = 0


def _moved(assignments: Iterable[Assignment[Post]], target_id: int) -> int:
    return sum(1 for a in assignments if a.changed or a.post.discussion_id != target_id)


class DiscussionMerger:
    def __init__(
        self,
        *,
        policy: MergePolicy | None = None,
        validator: MergeValidator | None = None,
        features: FeatureFlags | None = None,
        translator: Translator | None = None,
        dispatcher: EventDispatcher | None = None,
        excluded_post_types: Iterable[str] | None = None,
    ) -> None:
        self.translator = translator or Translator()
        self.policy = policy or PermissionPolicy()
        self.validator = validator or DefaultMergeValidator(self.translator)
        self.features = features or FeatureFlags()
        self.dispatcher = dispatcher or EventDispatcher()
        self.excluded_post_types = frozenset(
            settings.MERGE_EXCLUDED_POST_TYPES if excluded_post_types is None else excluded_post_types
        )

    async def merge(self, session: AsyncSession, command: MergeCommand) -> MergeResult:
        ordering = Ordering(command.ordering)
        discussion = (
            await session.execute(select(Discussion).where(Discussion.id == command.discussion_id))
        ).scalar()
        if discussion is None:
            raise DiscussionNotFound(command.discussion_id)

        if not self.policy.can_merge(command.actor, discussion):
            raise MergeForbidden(command.actor.id, discussion.id)

        if command.merge and ordering is Ordering.DATE:
            try:
                await self.fix_post_numbers(session, discussion)
            except MergeFailed:
                MERGES_TOTAL.labels(ordering=ordering.value, outcome="failed").inc()
                raise

        existing = await load_posts(session, discussion.id)
        involved = await self._load_discussions(session, command.ids)
        candidates = await self._candidate_posts(session, involved)

        self.validator.assert_valid(candidates, target=discussion, discussions=involved)

        merged_ids = [int(d.id) for d in involved if int(d.id) != int(discussion.id)]

        if not command.merge:
            if ordering is Ordering.SUFFIX:
                plan = renumber_append(existing, candidates)
            else:
                plan = renumber_by_date(existing, candidates)
            posts = [PlannedPost.from_post(a.post, number=a.number, discussion_id=discussion.id) for a in plan]
            MERGES_TOTAL.labels(ordering=ordering.value, outcome="preview").inc()
            return MergeResult(
                discussion=discussion,
                committed=False,
                ordering=ordering,
                posts=posts,
                summary=summarize_posts(posts, self.excluded_post_types),
                merged_discussion_ids=merged_ids,
                moved_post_count=_moved(plan, discussion.id),
            )

        if ordering is Ordering.SUFFIX:
            plan = renumber_append(existing, candidates)
        else:
            plan = renumber_by_date(existing, candidates, offset=park_offset(existing, candidates))
        moved_post_count = _moved(plan, discussion.id)

        async def work() -> DiscussionSummary:
            await self._step("park_renumber", lambda: self._apply(session, plan, discussion.id))
            if ordering is Ordering.DATE:
                await self._step(
                    "compact_renumber",
                    lambda: self._apply(session, renumber_by_date([a.post for a in plan]), discussion.id),
                )
            summary = await self._step(
                "metadata_refresh",
                lambda: refresh_discussion_metadata(session, discussion, self.excluded_post_types),
            )
            if self.features.is_enabled(SUBSCRIPTIONS):
                await self._step(
                    "subscription_migration",
                    lambda: migrate_subscriptions(
                        session, target=discussion, source_ids=[d.id for d in involved]
                    ),
                )
            await self._step(
                "redirection_delete",
                lambda: redirect_and_delete(session, sources=involved, target=discussion),
            )
            return summary

        try:
            summary = await run_in_transaction(session, work)
        except MergeFailed:
            MERGES_TOTAL.labels(ordering=ordering.value, outcome="failed").inc()
            raise

        MERGES_TOTAL.labels(ordering=ordering.value, outcome="committed").inc()
        POSTS_RENUMBERED_TOTAL.labels(ordering=ordering.value).inc(moved_post_count)
        logger.info(
            "Merged discussions %s into %s (%s ordering, %s posts moved)",
            merged_ids,
            discussion.id,
            ordering.value,
            moved_post_count,
        )

        self.dispatcher.dispatch(
            DiscussionMerged(
                actor=command.actor,
                posts=candidates,
                discussion=discussion,
                source_discussions=involved,
            )
        )

        posts = sorted((PlannedPost.from_post(a.post) for a in plan), key=lambda p: p.number)
        return MergeResult(
            discussion=discussion,
            committed=True,
            ordering=ordering,
            posts=posts,
            summary=summary,
            merged_discussion_ids=merged_ids,
            moved_post_count=moved_post_count,
        )

    async def fix_post_numbers(self, session: AsyncSession, discussion: Discussion) -> bool:
        """Close numbering gaps left by deleted posts, in its own transaction.

        Returns `False` without writing when the numbering is already contiguous.
        """
        posts = await load_posts(session, discussion.id)
        if not gap_fix_assignments(posts):
            return False

        async def work() -> None:
            parked = renumber_by_date(posts, offset=park_offset(posts, ()))
            await self._step("gap_fix", lambda: self._apply(session, parked, discussion.id))
            await self._step(
                "gap_fix", lambda: self._apply(session, renumber_by_date(posts), discussion.id)
            )
            await self._step(
                "gap_fix_metadata",
                lambda: refresh_discussion_metadata(session, discussion, self.excluded_post_types),
            )

        await run_in_transaction(session, work)
        GAP_FIXES_TOTAL.inc()
        logger.info("Fixed post numbering gaps in discussion %s (%s posts)", discussion.id, len(posts))
        return True

    async def _load_discussions(self, session: AsyncSession, ids: Sequence[int]) -> list[Discussion]:
        wanted = sorted({int(i) for i in ids})
        discussions = list(
            (
                await session.execute(
                    select(Discussion).where(Discussion.id.in_(wanted)).order_by(Discussion.id.asc())
                )
            ).scalars().all()
        )
        missing = set(wanted) - {int(d.id) for d in discussions}
        if missing:
            logger.warning("Skipping unknown discussions in merge: %s", sorted(missing))
        return discussions

    async def _candidate_posts(self, session: AsyncSession, discussions: Sequence[Discussion]) -> list[Post]:
        if not discussions:
            return []
        posts = (
            await session.execute(
                select(Post)
                .where(Post.discussion_id.in_([d.id for d in discussions]))
                .order_by(Post.discussion_id.asc(), Post.number.asc())
            )
        ).scalars().all()
        return [p for p in posts if p.type not in self.excluded_post_types]

    @staticmethod
    async def _apply(session: AsyncSession, assignments: Iterable[Assignment[Post]], discussion_id: int) -> None:
        for assignment in assignments:
            post = assignment.post
            if post.number == assignment.number and post.discussion_id == discussion_id:
                continue
            post.discussion_id = discussion_id
            post.number = assignment.number
        await session.flush()

    async def _step(self, step: str, action: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return await action()
        except MergeFailed:
            raise
        except Exception as exc:
            message = self.translator.trans(f"merge.error.{step}_failed")
            logger.error("[discussion-merge] %s", message, extra={"step": step})
            logger.error("[discussion-merge] %s failed: %s", step, exc, exc_info=exc)
            MERGE_FAILURES_TOTAL.labels(step=step).inc()
            raise MergeFailed(step, message) from exc
