"""Discussion and Post models."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from discussions.db import Base


class PostType:
    """Values of `posts.type`."""

    COMMENT = "comment"
    DISCUSSION_TAGGED = "discussionTagged"
    DISCUSSION_RENAMED = "discussionRenamed"
    DISCUSSION_STICKIED = "discussionStickied"
    DISCUSSION_LOCKED = "discussionLocked"


class Discussion(Base):
    """A thread. Summary columns are denormalized from its posts."""

    __tablename__ = "discussions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    comment_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    participant_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    post_number_index: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False, comment="Highest post number allocated so far"
    )
    # Plain ids: a FK here would make discussions <-> posts a creation cycle.
    first_post_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_post_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_post_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_posted_user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Discussion id={self.id} posts={self.comment_count}>"


class Post(Base):
    """A post inside a discussion, addressed by its 1-based `number`."""

    __tablename__ = "posts"
    __table_args__ = (
        UniqueConstraint("discussion_id", "number", name="posts_discussion_id_number_unique"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    discussion_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("discussions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    type: Mapped[str] = mapped_column(String(100), default=PostType.COMMENT, nullable=False)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    hidden_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Post id={self.id} discussion={self.discussion_id} #{self.number}>"
