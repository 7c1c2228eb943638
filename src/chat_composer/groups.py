"""Optional permission-group capability used for group based formatting."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Protocol

from .models import GroupFormat, Player

logger = logging.getLogger(__name__)


class GroupProvider(Protocol):
    """Source of a player's primary permission group."""

    available: bool

    def primary_group(self, player: Player) -> str | None: ...


class NoGroupProvider:
    """Variant used when no permission-group plugin is installed."""

    available = False

    def primary_group(self, player: Player) -> str | None:
        return None


class CallableGroupProvider:
    """Adapter around a plain ``player -> group`` lookup function."""

    available = True

    def __init__(self, lookup: Callable[[Player], str | None]):
        self._lookup = lookup

    def primary_group(self, player: Player) -> str | None:
        try:
            return self._lookup(player)
        except Exception:
            logger.warning("Error getting primary group for %s", player.name, exc_info=True)
            return None


def select_group_format(
    player: Player,
    groups: Mapping[str, GroupFormat],
    provider: GroupProvider,
) -> GroupFormat | None:
    """Return the group format applying to ``player``.

    The primary group wins when it has a configured format; otherwise the
    highest priority group whose ``group.<name>`` permission the player holds.
    Equal priorities keep configuration order.
    """

    if not provider.available or not groups:
        return None

    primary = provider.primary_group(player)
    if primary:
        primary_format = groups.get(primary)
        if primary_format is not None:
            return primary_format

    held = [group for name, group in groups.items() if player.has_permission(f"group.{name}")]
    if not held:
        return None
    return max(held, key=lambda group: group.priority)
