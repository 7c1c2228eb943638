"""Immutable template tables and the snapshot swapped on reload."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from .messages import MessageCatalog
from .models import Channel, ChatSettings, GroupFormat
from .placeholders import PlaceholderResolver

if TYPE_CHECKING:
    from .config import ChatConfig

FALLBACK_NAME_STYLE: Final = "<#4A90E2>%player_name%"

__all__ = [
    "FALLBACK_NAME_STYLE",
    "ChatSnapshot",
    "SnapshotHolder",
    "TemplateStore",
]


def _freeze(mapping: Mapping[str, object] | None) -> Mapping[str, object]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True, slots=True)
class TemplateStore:
    """Named channels, group formats and the four template categories."""

    channels: Mapping[str, Channel] = field(default_factory=dict)
    groups: Mapping[str, GroupFormat] = field(default_factory=dict)
    hovers: Mapping[str, str] = field(default_factory=dict)
    channel_prefixes: Mapping[str, str] = field(default_factory=dict)
    group_prefixes: Mapping[str, str] = field(default_factory=dict)
    name_styles: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in (
            "channels",
            "groups",
            "hovers",
            "channel_prefixes",
            "group_prefixes",
            "name_styles",
        ):
            object.__setattr__(self, name, _freeze(getattr(self, name)))

    def channel(self, name: str | None) -> Channel | None:
        if not name:
            return None
        return self.channels.get(name)

    def group(self, name: str | None) -> GroupFormat | None:
        if not name:
            return None
        return self.groups.get(name)

    def hover_template(self, name: str | None) -> str:
        return self.hovers.get(name or "", "")

    def channel_prefix(self, ref: str | None) -> str:
        """Return the channel prefix for ``ref``, or ``ref`` itself when unknown."""

        return _prefix_or_literal(self.channel_prefixes, ref)

    def group_prefix(self, ref: str | None) -> str:
        return _prefix_or_literal(self.group_prefixes, ref)

    def name_style(self, name: str | None) -> str:
        style = self.name_styles.get(name or "")
        if style is not None:
            return style
        return self.name_styles.get("default", FALLBACK_NAME_STYLE)


def _prefix_or_literal(templates: Mapping[str, str], ref: str | None) -> str:
    if not ref:
        return ""
    template = templates.get(ref, "")
    return template or ref


@dataclass(frozen=True, slots=True)
class ChatSnapshot:
    """Everything composition and routing read for a single message."""

    settings: ChatSettings
    templates: TemplateStore
    placeholders: PlaceholderResolver
    messages: MessageCatalog

    @classmethod
    def from_config(cls, config: ChatConfig) -> ChatSnapshot:
        return cls(
            settings=config.settings,
            templates=config.templates,
            placeholders=PlaceholderResolver(
                config.placeholders,
                trace=config.settings.debug.placeholder_resolution,
            ),
            messages=config.messages,
        )

    def channel(self, name: str | None) -> Channel | None:
        return self.templates.channel(name)

    def default_channel(self) -> Channel | None:
        return self.templates.channel(self.settings.default_channel)


class SnapshotHolder:
    """Holds the current snapshot; reload swaps the reference as a whole."""

    __slots__ = ("_current", "_lock")

    def __init__(self, snapshot: ChatSnapshot):
        self._current = snapshot
        self._lock = threading.Lock()

    @property
    def current(self) -> ChatSnapshot:
        return self._current

    def swap(self, snapshot: ChatSnapshot) -> ChatSnapshot:
        with self._lock:
            previous = self._current
            self._current = snapshot
        return previous
