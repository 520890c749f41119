"""Mergeability rules for a candidate post set."""
from __future__ import annotations

from typing import Protocol, Sequence

from discussions.config import settings
from discussions.errors import MergeValidationError
from discussions.models.discussion import Discussion, Post
from discussions.translator import Translator


class MergeValidator(Protocol):
    def assert_valid(
        self, posts: Sequence[Post], *, target: Discussion, discussions: Sequence[Discussion]
    ) -> None: ...


class DefaultMergeValidator:
    def __init__(self, translator: Translator | None = None, max_posts: int | None = None) -> None:
        self.translator = translator or Translator()
        self.max_posts = settings.MERGE_MAX_POSTS if max_posts is None else max_posts

    def assert_valid(
        self, posts: Sequence[Post], *, target: Discussion, discussions: Sequence[Discussion]
    ) -> None:
        t = self.translator.trans
        reasons: dict[str, list[str]] = {}

        if not any(int(d.id) != int(target.id) for d in discussions):
            reasons.setdefault("ids", []).append(t("merge.validation.no_other_discussions"))

        if not posts:
            reasons.setdefault("posts", []).append(t("merge.validation.no_posts"))
        elif len(posts) > self.max_posts:
            reasons.setdefault("posts", []).append(
                t("merge.validation.too_many_posts", limit=self.max_posts, count=len(posts))
            )

        for post in posts:
            if post.created_at is None:
                reasons.setdefault("posts", []).append(t("merge.validation.missing_date", post_id=post.id))

        if reasons:
            raise MergeValidationError(reasons)
