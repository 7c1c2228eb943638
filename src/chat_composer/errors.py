"""User facing error conditions raised by commands and routing."""

from __future__ import annotations

from collections.abc import Mapping


class UserError(Exception):
    """Condition that is reported back to the acting player.

    ``key`` names the entry in the message catalog and ``bindings`` fill its
    ``<tag>`` placeholders.
    """

    key = "error.generic"

    def __init__(self, detail: str = "", **bindings: str) -> None:
        super().__init__(detail or self.key)
        self.bindings: Mapping[str, str] = dict(bindings)


class ChannelNotFound(UserError):
    key = "error.channel-not-found"


class NoPermission(UserError):
    key = "error.no-permission"


class NoDefaultChannel(UserError):
    key = "error.no-default-channel"


class PlayerNotFound(UserError):
    key = "error.player-not-found"


class PlayerNotOnline(UserError):
    key = "error.player-not-online"


class SelfMessage(UserError):
    key = "error.self-message"


class MessagesDisabled(UserError):
    key = "error.player-messages-disabled"


class NobodyToReply(UserError):
    key = "error.nobody-to-reply"


class UsageError(UserError):
    key = "error.msg-usage"


class ReplyUsageError(UsageError):
    key = "error.reply-usage"


class CooldownActive(UserError):
    key = "cooldown"
