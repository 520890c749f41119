"""Error taxonomy for discussion merges.

`DiscussionNotFound`, `MergeForbidden` and `MergeValidationError` are raised
before anything is written. `MergeFailed` is raised after the transaction has
been rolled back and names the phase that failed.
"""
from __future__ import annotations


class MergeError(Exception):
    """Base class for every error surfaced by a merge command."""


class DiscussionNotFound(MergeError):
    def __init__(self, discussion_id: int) -> None:
        super().__init__(f"Discussion {discussion_id} not found")
        self.discussion_id = discussion_id


class MergeForbidden(MergeError):
    def __init__(self, actor_id: int | None, discussion_id: int) -> None:
        super().__init__(f"Actor {actor_id} may not merge discussion {discussion_id}")
        self.actor_id = actor_id
        self.discussion_id = discussion_id


class MergeValidationError(MergeError):
    """Candidate posts were rejected; `reasons` maps a field to its messages."""

    def __init__(self, reasons: dict[str, list[str]]) -> None:
        super().__init__("; ".join(msg for messages in reasons.values() for msg in messages))
        self.reasons = reasons


class MergeFailed(MergeError):
    """A write phase raised; the caller gets the translated message only."""

    def __init__(self, step: str, message: str) -> None:
        super().__init__(message)
        self.step = step
        self.message = message

    @property
    def reasons(self) -> dict[str, list[str]]:
        return {"merge": [self.message]}
