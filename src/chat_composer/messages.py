"""System message catalog used for command feedback and direct messages."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Final

from yaml import safe_load

DEFAULT_MESSAGES: Final[Mapping[str, str]] = MappingProxyType(
    {
        "channel-changed": "<green>You are now chatting in <white><channel></white>.",
        "channel-already-active": "<yellow>You are already in channel <white><channel></white>.",
        "cooldown": "<red>Please wait <seconds> seconds before chatting again.",
        "msg-to-format": "<gray>[me -> <player>]</gray> <white><message>",
        "msg-from-format": "<gray>[<player> -> me]</gray> <white><message>",
        "socialspy-format": "<dark_gray>[Spy] <sender> -> <receiver>:</dark_gray> <gray><message>",
        "msgtoggle-enabled": "<green>You are now accepting private messages.",
        "msgtoggle-disabled": "<red>You are no longer accepting private messages.",
        "socialspy-enabled": "<green>Social spy enabled.",
        "socialspy-disabled": "<red>Social spy disabled.",
        "plugin-reloaded": "<green>Chat configuration reloaded.",
        "error.channel-not-found": "<red>Channel <channel> not found!",
        "error.no-permission": "<red>You don't have permission to do that!",
        "error.no-default-channel": "<red>No default channel is configured.",
        "error.player-not-found": "<red>Player <player> not found!",
        "error.player-not-online": "<red>That player is no longer online.",
        "error.self-message": "<red>You cannot send a message to yourself!",
        "error.player-messages-disabled": "<red><player> has messages disabled!",
        "error.nobody-to-reply": "<red>You have nobody to reply to.",
        "error.msg-usage": "<red>Usage: /msg <player> <message>",
        "error.reply-usage": "<red>Usage: /r <message>",
        "error.generic": "<red>Something went wrong.",
    }
)


@dataclass(frozen=True, slots=True)
class MessageCatalog:
    """Flat ``key -> template`` mapping with built-in defaults."""

    overrides: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "overrides", MappingProxyType(dict(self.overrides)))

    def template(self, key: str) -> str:
        value = self.overrides.get(key)
        if value is not None:
            return value
        return DEFAULT_MESSAGES.get(key, f"Message not found: {key}")

    def keys(self) -> frozenset[str]:
        return frozenset(DEFAULT_MESSAGES) | frozenset(self.overrides)

    @classmethod
    def from_mapping(cls, raw: object) -> MessageCatalog:
        if raw is None:
            return cls()
        if not isinstance(raw, Mapping):
            raise ValueError("Configuration field 'messages' must be a mapping if provided")
        return cls(dict(_flatten(raw)))

    @classmethod
    def from_file(cls, path: Path) -> MessageCatalog:
        if not path.exists():
            raise FileNotFoundError(f"Messages file not found: {path}")
        with path.open("r", encoding="utf-8") as file:
            data = safe_load(file) or {}
        return cls.from_mapping(data)

    def merged(self, other: MessageCatalog) -> MessageCatalog:
        return MessageCatalog({**self.overrides, **other.overrides})


def _flatten(raw: Mapping[Any, Any], prefix: str = "") -> Iterator[tuple[str, str]]:
    for key, value in raw.items():
        if key is None:
            continue
        name = f"{prefix}{key}"
        if isinstance(value, Mapping):
            yield from _flatten(value, f"{name}.")
        elif value is not None:
            yield name, str(value)
