"""Feature switches read from settings."""
from __future__ import annotations

from typing import Iterable

from discussions.config import settings

SUBSCRIPTIONS = "subscriptions"


class FeatureFlags:
    def __init__(self, enabled: Iterable[str] | None = None) -> None:
        names = settings.ENABLED_FEATURES if enabled is None else enabled
        self._enabled = {str(name).strip().lower() for name in names}

    def is_enabled(self, name: str) -> bool:
        return name.lower() in self._enabled
