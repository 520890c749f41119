"""Discussion merge API.

Actor identity arrives in headers set by the upstream gateway.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import RedirectResponse

from discussions.celery_app import celery
from discussions.db import get_session
from discussions.discussion_metadata import load_posts
from discussions.errors import DiscussionNotFound, MergeFailed, MergeForbidden, MergeValidationError
from discussions.events import DiscussionMerged, EventDispatcher
from discussions.merge_service import DiscussionMerger, MergeCommand, MergeResult, Ordering
from discussions.models.discussion import Discussion
from discussions.models.redirection import Redirection
from discussions.permissions import Actor
from discussions.redirections import resolve_discussion_id

router = APIRouter(prefix="/api/discussions", tags=["discussions"])
logger = logging.getLogger(__name__)


class MergePayload(BaseModel):
    ids: list[int] = Field(min_length=1)
    merge: bool = False
    ordering: Ordering = Ordering.DATE


class PostOut(BaseModel):
    id: int
    discussion_id: int
    number: int
    created_at: datetime
    user_id: int | None = None
    type: str


class DiscussionOut(BaseModel):
    id: int
    title: str
    comment_count: int
    participant_count: int
    post_number_index: int
    first_post_id: int | None = None
    last_post_id: int | None = None
    last_post_number: int | None = None
    last_posted_at: datetime | None = None
    posts: list[PostOut] = Field(default_factory=list)


class MergeResponse(BaseModel):
    committed: bool
    ordering: Ordering
    discussion: DiscussionOut
    merged_discussion_ids: list[int]
    moved_post_count: int


class RedirectionOut(BaseModel):
    from_discussion_id: int
    to_discussion_id: int
    http_code: int
    created_at: datetime


def get_actor(
    x_user_id: int | None = Header(default=None),
    x_user_permissions: str | None = Header(default=None),
    x_user_admin: bool = Header(default=False),
) -> Actor:
    permissions = frozenset(p.strip() for p in (x_user_permissions or "").split(",") if p.strip())
    return Actor(id=x_user_id, permissions=permissions, is_admin=x_user_admin)


def _celery_relay(event: DiscussionMerged) -> None:
    celery.send_task(
        "discussions.workers.merged.run_discussion_merged",
        args=[event.to_payload()],
        queue="discussion_events",
    )


def get_event_dispatcher() -> EventDispatcher:
    dispatcher = EventDispatcher()
    dispatcher.listen(DiscussionMerged, _celery_relay)
    return dispatcher


def get_merger(dispatcher: EventDispatcher = Depends(get_event_dispatcher)) -> DiscussionMerger:
    return DiscussionMerger(dispatcher=dispatcher)


def _post_out(post: Any) -> PostOut:
    return PostOut(
        id=post.id,
        discussion_id=post.discussion_id,
        number=post.number,
        created_at=post.created_at,
        user_id=post.user_id,
        type=post.type,
    )


def _merge_response(result: MergeResult) -> MergeResponse:
    d = result.discussion
    s = result.summary
    return MergeResponse(
        committed=result.committed,
        ordering=result.ordering,
        merged_discussion_ids=result.merged_discussion_ids,
        moved_post_count=result.moved_post_count,
        discussion=DiscussionOut(
            id=d.id,
            title=d.title,
            comment_count=s.comment_count,
            participant_count=s.participant_count,
            post_number_index=s.post_number_index,
            first_post_id=s.first_post_id,
            last_post_id=s.last_post_id,
            last_post_number=s.last_post_number,
            last_posted_at=s.last_posted_at,
            posts=[_post_out(p) for p in result.posts],
        ),
    )


@router.post("/{discussion_id}/merge")
async def merge_discussions(
    discussion_id: int,
    payload: MergePayload,
    actor: Actor = Depends(get_actor),
    merger: DiscussionMerger = Depends(get_merger),
    db: AsyncSession = Depends(get_session),
) -> MergeResponse:
    """Preview (`merge=false`) or commit a merge of `ids` into `discussion_id`."""
    if discussion_id not in payload.ids:
        raise HTTPException(status_code=422, detail={"errors": {"ids": ["ids must include the target discussion"]}})

    command = MergeCommand(
        actor=actor,
        discussion_id=discussion_id,
        ids=payload.ids,
        merge=payload.merge,
        ordering=payload.ordering,
    )
    try:
        result = await merger.merge(db, command)
    except DiscussionNotFound:
        raise HTTPException(status_code=404, detail="Discussion not found")
    except MergeForbidden:
        raise HTTPException(status_code=403, detail="Not allowed to merge this discussion")
    except (MergeValidationError, MergeFailed) as exc:
        raise HTTPException(status_code=422, detail={"errors": exc.reasons})

    logger.info(
        "Merge %s for discussion %s",
        "committed" if result.committed else "previewed",
        discussion_id,
        extra={"actor_id": actor.id, "ids": payload.ids, "ordering": payload.ordering.value},
    )
    return _merge_response(result)


@router.get("/{discussion_id}", response_model=None)
async def get_discussion(discussion_id: int, db: AsyncSession = Depends(get_session)) -> Any:
    """Discussion with its posts; merged-away ids redirect to where they live now."""
    discussion = (await db.execute(select(Discussion).where(Discussion.id == discussion_id))).scalar()
    if discussion is None:
        live_id = await resolve_discussion_id(db, discussion_id)
        if live_id is None:
            raise HTTPException(status_code=404, detail="Discussion not found")
        return RedirectResponse(url=f"{router.prefix}/{live_id}", status_code=301)

    posts = await load_posts(db, discussion.id)
    return DiscussionOut(
        id=discussion.id,
        title=discussion.title,
        comment_count=discussion.comment_count,
        participant_count=discussion.participant_count,
        post_number_index=discussion.post_number_index,
        first_post_id=discussion.first_post_id,
        last_post_id=discussion.last_post_id,
        last_post_number=discussion.last_post_number,
        last_posted_at=discussion.last_posted_at,
        posts=[_post_out(p) for p in posts],
    )


@router.get("/{discussion_id}/redirections")
async def get_redirections(discussion_id: int, limit: int = 100, db: AsyncSession = Depends(get_session)):
    """Merged-away discussions that now point at `discussion_id`."""
    rows = (
        await db.execute(
            select(Redirection)
            .where(Redirection.to_discussion_id == discussion_id)
            .order_by(Redirection.created_at.desc(), Redirection.id.desc())
            .limit(max(1, min(limit, 500)))
        )
    ).scalars().all()
    return {
        "discussion_id": discussion_id,
        "items": [
            RedirectionOut(
                from_discussion_id=r.from_discussion_id,
                to_discussion_id=r.to_discussion_id,
                http_code=r.http_code,
                created_at=r.created_at,
            )
            for r in rows
        ],
    }
