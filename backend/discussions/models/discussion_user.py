"""Per-user discussion state (read position and follow subscription)."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from discussions.db import Base


class Subscription:
    FOLLOW = "follow"
    IGNORE = "ignore"


class DiscussionUser(Base):
    __tablename__ = "discussion_user"

    discussion_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("discussions.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    subscription: Mapped[str | None] = mapped_column(
        String(16), nullable=True, comment="follow | ignore | NULL"
    )
    last_read_post_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<DiscussionUser discussion={self.discussion_id} user={self.user_id} sub={self.subscription}>"
