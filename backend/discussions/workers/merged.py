"""Post-merge audit worker.

Re-reads a freshly merged discussion and checks that its numbering is
contiguous and its summary columns agree with its posts.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from discussions.celery_app import celery
from discussions.db import async_session_factory
from discussions.discussion_metadata import load_posts, summarize_posts
from discussions.metrics import NUMBERING_AUDIT_GAPS_TOTAL
from discussions.models.discussion import Discussion
from discussions.renumbering import is_contiguous

logger = logging.getLogger(__name__)

AUDITED_COLUMNS = (
    "comment_count",
    "participant_count",
    "first_post_id",
    "last_post_id",
    "last_post_number",
)


@dataclass(slots=True)
class MergeAudit:
    discussion_id: int
    found: bool = True
    contiguous: bool = True
    stale_columns: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.found and self.contiguous and not self.stale_columns


async def audit_merged_discussion(session: AsyncSession, discussion_id: int) -> MergeAudit:
    discussion = (
        await session.execute(select(Discussion).where(Discussion.id == discussion_id))
    ).scalar()
    if discussion is None:
        return MergeAudit(discussion_id=discussion_id, found=False)

    posts = await load_posts(session, discussion.id)
    summary = summarize_posts(posts)
    audit = MergeAudit(
        discussion_id=discussion_id,
        contiguous=is_contiguous(p.number for p in posts),
        stale_columns=[
            column
            for column in AUDITED_COLUMNS
            if getattr(discussion, column) != getattr(summary, column)
        ],
    )
    if not audit.contiguous:
        NUMBERING_AUDIT_GAPS_TOTAL.inc()
    return audit


@celery.task(name="discussions.workers.merged.run_discussion_merged")
def run_discussion_merged(payload: dict[str, Any]) -> None:
    asyncio.run(_run_discussion_merged(payload))


async def _run_discussion_merged(payload: dict[str, Any]) -> None:
    discussion_id = int(payload["discussion_id"])
    async with async_session_factory() as session:
        audit = await audit_merged_discussion(session, discussion_id)

    if not audit.found:
        # Merged again before this task ran.
        logger.info("Merged discussion %s no longer exists, skipping audit", discussion_id)
        return
    if audit.ok:
        logger.info(
            "Discussion %s merge audit ok",
            discussion_id,
            extra={
                "actor_id": payload.get("actor_id"),
                "source_discussion_ids": payload.get("source_discussion_ids", []),
                "post_count": len(payload.get("post_ids", [])),
            },
        )
        return
    logger.warning(
        "Discussion %s merge audit failed: contiguous=%s stale=%s",
        discussion_id,
        audit.contiguous,
        audit.stale_columns,
    )
