"""Miscellaneous helpers."""

from __future__ import annotations

import math
import time
from collections.abc import Callable


class CooldownGuard:
    """Per-sender message cooldown based on timestamp comparison."""

    def __init__(self, seconds: int, *, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._last_seen: dict[str, float] = {}
        self.update_seconds(seconds)

    @property
    def seconds(self) -> int:
        return self._seconds

    def update_seconds(self, seconds: int) -> None:
        self._seconds = max(0, int(seconds))

    def remaining(self, sender_id: str, *, bypass: bool = False) -> int:
        """Return the remaining wait in whole seconds, or 0 when allowed."""

        if self._seconds <= 0 or bypass:
            return 0
        last = self._last_seen.get(sender_id)
        if last is None:
            return 0
        elapsed = self._clock() - last
        if elapsed < self._seconds:
            return max(1, math.ceil(self._seconds - elapsed))
        return 0

    def record(self, sender_id: str) -> None:
        """Start the cooldown window for an accepted message."""

        self._last_seen[sender_id] = self._clock()

    def forget(self, sender_id: str) -> None:
        self._last_seen.pop(sender_id, None)


def normalize_player_name(name: str | None) -> str | None:
    """Return a lowercase player name for exact, case-insensitive lookup."""

    if name is None:
        return None
    normalized = name.strip().lower()
    return normalized or None
