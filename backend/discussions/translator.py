"""User-facing messages for merge errors."""
from __future__ import annotations

import logging

from discussions.config import settings

logger = logging.getLogger(__name__)

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "merge.error.gap_fix_failed": "Fixing the post numbers of the target discussion failed.",
        "merge.error.gap_fix_metadata_failed": "Updating the target discussion after fixing its post numbers failed.",
        "merge.error.park_renumber_failed": "Moving the posts into the target discussion failed.",
        "merge.error.compact_renumber_failed": "Renumbering the merged posts failed.",
        "merge.error.metadata_refresh_failed": "Updating the merged discussion failed.",
        "merge.error.subscription_migration_failed": "Moving follow subscriptions to the merged discussion failed.",
        "merge.error.redirection_delete_failed": "Redirecting and deleting the merged discussions failed.",
        "merge.validation.no_other_discussions": "Select at least one other discussion to merge.",
        "merge.validation.no_posts": "There are no posts to merge.",
        "merge.validation.too_many_posts": "A merge may move at most {limit} posts ({count} selected).",
        "merge.validation.missing_date": "Post {post_id} has no creation date.",
    },
}


class Translator:
    def __init__(self, locale: str | None = None, messages: dict[str, dict[str, str]] | None = None) -> None:
        self.locale = locale or settings.APP_LOCALE
        self._messages = messages or MESSAGES

    def trans(self, key: str, **params: object) -> str:
        catalogue = self._messages.get(self.locale) or self._messages["en"]
        template = catalogue.get(key) or self._messages["en"].get(key)
        if template is None:
            logger.warning("Missing translation for %s (%s)", key, self.locale)
            return key
        return template.format(**params) if params else template
