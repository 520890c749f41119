"""Post-commit domain events and their in-process dispatcher."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from discussions.models.discussion import Discussion, Post
from discussions.permissions import Actor

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DiscussionMerged:
    actor: Actor
    posts: list[Post]
    discussion: Discussion
    source_discussions: list[Discussion] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "actor_id": self.actor.id,
            "discussion_id": self.discussion.id,
            "post_ids": [p.id for p in self.posts],
            "source_discussion_ids": [
                d.id for d in self.source_discussions if d.id != self.discussion.id
            ],
        }


Listener = Callable[[Any], None]


class EventDispatcher:
    """Fire-and-forget: a failing listener is logged and the others still run."""

    def __init__(self) -> None:
        self._listeners: dict[type, list[Listener]] = {}

    def listen(self, event_type: type, listener: Listener) -> None:
        self._listeners.setdefault(event_type, []).append(listener)

    def dispatch(self, event: Any) -> None:
        for listener in self._listeners.get(type(event), []):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener %r failed for %s", listener, type(event).__name__)
