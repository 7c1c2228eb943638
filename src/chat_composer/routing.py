"""Channel resolution, permission gating and recipient selection."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .errors import ChannelNotFound, NoDefaultChannel, NoPermission
from .models import Channel, ChatUser, Player
from .registry import UserRegistry
from .spatial import EuclideanSpace, SpatialIndex
from .templates import SnapshotHolder

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ChannelSwitch:
    channel: Channel
    changed: bool


class ChannelRouter:
    """Decide which channel a message belongs to and who receives it.

    The router reads the snapshot once per call so a concurrent reload is
    observed either entirely or not at all.
    """

    def __init__(
        self,
        holder: SnapshotHolder,
        registry: UserRegistry,
        *,
        space: SpatialIndex | None = None,
    ):
        self._holder = holder
        self._registry = registry
        self._space = space or EuclideanSpace()

    def resolve_channel(self, user: ChatUser) -> Channel:
        """Return the user's channel, moving them to the default if it vanished."""

        snapshot = self._holder.current
        channel = snapshot.channel(user.current_channel)
        if channel is not None:
            return channel

        default = snapshot.default_channel()
        if default is None:
            raise NoDefaultChannel()
        logger.info(
            "Channel '%s' of %s no longer exists; moving to '%s'",
            user.current_channel,
            user.id,
            default.name,
        )
        self._registry.set_channel(user, default.name)
        return default

    def check_permission(self, player: Player, channel: Channel) -> None:
        if channel.permission and not player.has_permission(channel.permission):
            raise NoPermission(channel=channel.name)

    def route(self, sender: Player, channel: Channel, online: Iterable[Player]) -> set[str]:
        if channel.is_proximity:
            return {
                player.id
                for player in online
                if self._space.same_space(sender, player)
                and self._space.distance(sender, player) <= channel.radius
            }

        recipients: set[str] = set()
        for player in online:
            user = self._registry.find(player.id)
            if user is not None and user.current_channel == channel.name:
                recipients.add(player.id)
        return recipients

    def switch_channel(self, player: Player, name: str) -> ChannelSwitch:
        channel = self._holder.current.channel(name.strip())
        if channel is None:
            raise ChannelNotFound(channel=name)
        self.check_permission(player, channel)

        user = self._registry.get(player.id)
        if user.current_channel == channel.name:
            return ChannelSwitch(channel=channel, changed=False)
        self._registry.set_channel(user, channel.name)
        return ChannelSwitch(channel=channel, changed=True)
