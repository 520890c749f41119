"""Carry follow subscriptions from merged-away discussions over to the target.

Two passes, both explicit set differences over `discussion_user`:

1. followers of a source who have no row on the target get one of their
   source rows moved onto the target;
2. target rows with no subscription value are upgraded to `follow` when the
   same user follows a source.

Rows on the target with an explicit value (`follow`, `ignore`) are left alone.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from discussions.metrics import SUBSCRIPTIONS_MIGRATED_TOTAL
from discussions.models.discussion import Discussion
from discussions.models.discussion_user import DiscussionUser, Subscription

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SubscriptionMigration:
    moved_user_ids: list[int] = field(default_factory=list)
    upgraded_user_ids: list[int] = field(default_factory=list)


async def _source_followers(session: AsyncSession, source_ids: list[int]) -> dict[int, int]:
    """user_id -> lowest source discussion id the user follows."""
    rows = (
        await session.execute(
            select(DiscussionUser.user_id, DiscussionUser.discussion_id)
            .where(
                DiscussionUser.discussion_id.in_(source_ids),
                DiscussionUser.subscription == Subscription.FOLLOW,
            )
            .order_by(DiscussionUser.user_id.asc(), DiscussionUser.discussion_id.asc())
        )
    ).all()
    followers: dict[int, int] = {}
    for user_id, discussion_id in rows:
        followers.setdefault(int(user_id), int(discussion_id))
    return followers


async def migrate_subscriptions(
    session: AsyncSession,
    *,
    target: Discussion,
    source_ids: Iterable[int],
) -> SubscriptionMigration:
    result = SubscriptionMigration()
    source_ids = sorted({int(i) for i in source_ids if int(i) != int(target.id)})
    if not source_ids:
        return result

    followers = await _source_followers(session, source_ids)
    if not followers:
        return result

    target_rows = {
        int(user_id): subscription
        for user_id, subscription in (
            await session.execute(
                select(DiscussionUser.user_id, DiscussionUser.subscription).where(
                    DiscussionUser.discussion_id == target.id,
                    DiscussionUser.user_id.in_(list(followers)),
                )
            )
        ).all()
    }

    for user_id, source_id in followers.items():
        if user_id in target_rows:
            continue
        await session.execute(
            update(DiscussionUser)
            .where(
                and_(
                    DiscussionUser.discussion_id == source_id,
                    DiscussionUser.user_id == user_id,
                )
            )
            .values(
                discussion_id=target.id,
                last_read_post_number=target.last_post_number,
                subscription=Subscription.FOLLOW,
            )
            .execution_options(synchronize_session=False)
        )
        result.moved_user_ids.append(user_id)

    upgrade_ids = sorted(uid for uid, subscription in target_rows.items() if subscription is None)
    if upgrade_ids:
        await session.execute(
            update(DiscussionUser)
            .where(
                DiscussionUser.discussion_id == target.id,
                DiscussionUser.user_id.in_(upgrade_ids),
                DiscussionUser.subscription.is_(None),
            )
            .values(subscription=Subscription.FOLLOW)
            .execution_options(synchronize_session=False)
        )
        result.upgraded_user_ids.extend(upgrade_ids)

    if result.moved_user_ids:
        SUBSCRIPTIONS_MIGRATED_TOTAL.labels(mode="moved").inc(len(result.moved_user_ids))
    if result.upgraded_user_ids:
        SUBSCRIPTIONS_MIGRATED_TOTAL.labels(mode="upgraded").inc(len(result.upgraded_user_ids))
    logger.info(
        "Subscriptions migrated to discussion %s: moved=%s upgraded=%s",
        target.id,
        len(result.moved_user_ids),
        len(result.upgraded_user_ids),
    )
    return result
