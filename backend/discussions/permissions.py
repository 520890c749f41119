"""Actor identity and the merge permission check."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from discussions.models.discussion import Discussion

MERGE_PERMISSION = "discussion.merge"


@dataclass(frozen=True, slots=True)
class Actor:
    id: int | None
    permissions: frozenset[str] = field(default_factory=frozenset)
    is_admin: bool = False


class MergePolicy(Protocol):
    def can_merge(self, actor: Actor, discussion: Discussion) -> bool: ...


class PermissionPolicy:
    """Admins may merge anything; everyone else needs `discussion.merge`."""

    def can_merge(self, actor: Actor, discussion: Discussion) -> bool:
        if actor.id is None:
            return False
        return actor.is_admin or MERGE_PERMISSION in actor.permissions
