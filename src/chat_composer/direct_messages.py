"""Private messages, replies and the social spy copy."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Final

from .errors import (
    MessagesDisabled,
    NobodyToReply,
    PlayerNotFound,
    PlayerNotOnline,
    ReplyUsageError,
    SelfMessage,
    UsageError,
)
from .markup import escape_markup
from .models import Notice, Player
from .registry import UserRegistry
from .templates import SnapshotHolder
from .utils import normalize_player_name

MSGTOGGLE_BYPASS_PERMISSION: Final = "chat.msgtoggle.bypass"


@dataclass(frozen=True, slots=True)
class DirectExchange:
    sender: Player
    target: Player
    body: str
    deliveries: tuple[Notice, ...]


class DirectMessenger:
    """Handle ``/msg``, ``/reply`` and the related preference toggles."""

    def __init__(self, holder: SnapshotHolder, registry: UserRegistry):
        self._holder = holder
        self._registry = registry

    def send(
        self,
        sender: Player,
        target_name: str,
        body: str,
        online: Iterable[Player],
    ) -> DirectExchange:
        body = body.strip()
        wanted = normalize_player_name(target_name)
        if not body or wanted is None:
            raise UsageError()

        players = list(online)
        target = next(
            (player for player in players if normalize_player_name(player.name) == wanted),
            None,
        )
        if target is None:
            raise PlayerNotFound(player=target_name)
        return self._deliver(sender, target, body, players)

    def reply(self, sender: Player, body: str, online: Iterable[Player]) -> DirectExchange:
        body = body.strip()
        if not body:
            raise ReplyUsageError()

        user = self._registry.get(sender.id)
        if user.last_messaged is None:
            raise NobodyToReply()

        players = list(online)
        target = next((player for player in players if player.id == user.last_messaged), None)
        if target is None:
            raise PlayerNotOnline()
        return self._deliver(sender, target, body, players)

    def toggle_messages(self, player: Player) -> Notice:
        enabled = self._registry.toggle_messages(self._registry.get(player.id))
        key = "msgtoggle-enabled" if enabled else "msgtoggle-disabled"
        return Notice(recipient_id=player.id, key=key)

    def toggle_social_spy(self, player: Player) -> Notice:
        enabled = self._registry.toggle_social_spy(self._registry.get(player.id))
        key = "socialspy-enabled" if enabled else "socialspy-disabled"
        return Notice(recipient_id=player.id, key=key)

    def _deliver(
        self,
        sender: Player,
        target: Player,
        body: str,
        online: list[Player],
    ) -> DirectExchange:
        settings = self._holder.current.settings
        if sender.id == target.id and not settings.allow_self_messaging:
            raise SelfMessage()

        if not self._registry.peek(target.id).msg_toggle and not sender.has_permission(
            MSGTOGGLE_BYPASS_PERMISSION
        ):
            raise MessagesDisabled(player=target.name)

        self._registry.link_conversation(
            self._registry.get(sender.id), self._registry.get(target.id)
        )

        message = escape_markup(body)
        deliveries = [
            Notice(
                recipient_id=sender.id,
                key="msg-to-format",
                bindings={"player": escape_markup(target.name), "message": message},
            ),
            Notice(
                recipient_id=target.id,
                key="msg-from-format",
                bindings={"player": escape_markup(sender.name), "message": message},
            ),
        ]

        online_ids = {player.id for player in online}
        spy_bindings = {
            "sender": escape_markup(sender.name),
            "receiver": escape_markup(target.name),
            "message": message,
        }
        for spy in self._registry.social_spies():
            if spy.id in (sender.id, target.id) or spy.id not in online_ids:
                continue
            deliveries.append(
                Notice(recipient_id=spy.id, key="socialspy-format", bindings=spy_bindings)
            )

        return DirectExchange(
            sender=sender,
            target=target,
            body=body,
            deliveries=tuple(deliveries),
        )
