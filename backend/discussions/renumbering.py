"""Post renumbering strategies.

Everything here is pure: functions take post-like objects (anything with
`id`, `number` and `created_at`) and return `Assignment`s without touching
the objects or the store. Callers decide whether to apply them.

Writes against the `(discussion_id, number)` unique constraint go in two
phases: first every moved post is parked above `park_offset(...)`, then the
parked posts are compacted to 1..N. Neither phase can hit a number that is
still held by another row.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Generic, Iterable, Protocol, Sequence, TypeVar


class Numbered(Protocol):
    id: int
    number: int
    created_at: datetime


P = TypeVar("P", bound=Numbered)


@dataclass(frozen=True, slots=True)
class Assignment(Generic[P]):
    post: P
    number: int

    @property
    def changed(self) -> bool:
        return self.post.number != self.number


def _union(existing: Iterable[P], incoming: Iterable[P]) -> tuple[list[P], list[P]]:
    """Split into (existing, new) with posts already present in `existing` dropped from `new`."""
    base = list(existing)
    seen = {p.id for p in base}
    new: list[P] = []
    for post in incoming:
        if post.id in seen:
            continue
        seen.add(post.id)
        new.append(post)
    return base, new


def _by_date(posts: Sequence[P]) -> list[P]:
    # sorted() is stable: equal timestamps keep their incoming order
    return sorted(posts, key=lambda p: p.created_at)


def max_number(posts: Iterable[Numbered]) -> int:
    return max((int(p.number) for p in posts if p.number is not None), default=0)


def park_offset(existing: Sequence[Numbered], incoming: Iterable[Numbered]) -> int:
    """First number above every number a chronological merge can collide with."""
    base, new = _union(existing, incoming)
    return max(len(base) + len(new), max_number(base))


def renumber_by_date(
    existing: Iterable[P], incoming: Iterable[P] = (), *, offset: int = 0
) -> list[Assignment[P]]:
    """Merge both sets, order by `created_at` and number them `offset+1 .. offset+N`."""
    base, new = _union(existing, incoming)
    return [
        Assignment(post, offset + index)
        for index, post in enumerate(_by_date(base + new), start=1)
    ]


def renumber_append(existing: Iterable[P], incoming: Iterable[P]) -> list[Assignment[P]]:
    """Keep existing numbers; number new posts by date after the current maximum."""
    base, new = _union(existing, incoming)
    number = max_number(base)
    assignments = [Assignment(post, int(post.number)) for post in base]
    for post in _by_date(new):
        number += 1
        assignments.append(Assignment(post, number))
    return sorted(assignments, key=lambda a: a.number)


def is_contiguous(numbers: Iterable[int]) -> bool:
    ordered = sorted(numbers)
    return ordered == list(range(1, len(ordered) + 1))


def has_number_gaps(posts: Sequence[Numbered]) -> bool:
    """True when the post count disagrees with the highest number in use."""
    return len(posts) != max_number(posts)


def gap_fix_assignments(posts: Sequence[P]) -> list[Assignment[P]]:
    """Compact numbering to 1..N by date; empty when nothing needs fixing."""
    if not has_number_gaps(posts):
        return []
    return renumber_by_date(posts)
