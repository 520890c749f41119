"""Redirection model: where a merged-away discussion now lives."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, func
from sqlalchemy.orm import Mapped, mapped_column

from discussions.db import Base


class Redirection(Base):
    """Immutable audit record written once per discussion removed by a merge."""

    __tablename__ = "discussion_redirections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    from_discussion_id: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    # No FK: the target may itself be merged away later and the chain must survive.
    to_discussion_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    http_code: Mapped[int] = mapped_column(Integer, default=301, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Redirection id={self.id} {self.from_discussion_id} -> {self.to_discussion_id}>"
