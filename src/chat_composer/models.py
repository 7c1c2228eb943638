"""Data models used across the chat composer."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Final

DEFAULT_CHAT_FORMAT: Final = "%channel_prefix%%group_prefix%%name%: %message%"
DEFAULT_HOVER_TEMPLATE: Final = "player-info"
DEFAULT_URL_HOVER_TEXT: Final = "<#AAAAAA>Click to open"


@dataclass(frozen=True, slots=True)
class Channel:
    """Named message scope with its delivery rule and decoration references."""

    name: str
    permission: str = ""
    radius: float = -1.0
    prefix: str = ""
    hover: str = DEFAULT_HOVER_TEMPLATE
    display_name: str = ""
    format: str = ""

    @property
    def is_proximity(self) -> bool:
        return self.radius > 0

    @property
    def label(self) -> str:
        return self.display_name or self.name


@dataclass(frozen=True, slots=True)
class GroupFormat:
    """Permission-group specific name styling and optional full format."""

    name: str
    name_style: str = "default"
    prefix: str = ""
    format: str = ""
    suffix: str = ""
    priority: int = 0


@dataclass(frozen=True, slots=True)
class Location:
    world: str
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass(frozen=True, slots=True)
class Player:
    """Connected player identity as supplied by the host server."""

    id: str
    name: str
    display_name: str = ""
    permissions: frozenset[str] = frozenset()
    location: Location | None = None

    def __post_init__(self) -> None:
        if not self.display_name:
            object.__setattr__(self, "display_name", self.name)
        object.__setattr__(self, "permissions", frozenset(self.permissions))

    def has_permission(self, node: str) -> bool:
        return node in self.permissions


@dataclass(slots=True)
class ChatUser:
    """Per-player session and preference state."""

    id: str
    current_channel: str
    last_messaged: str | None = None
    msg_toggle: bool = True
    social_spy: bool = False

    def snapshot(self) -> "ChatUser":
        """Return a detached copy suitable for handing to a background writer."""

        return replace(self)


@dataclass(frozen=True, slots=True)
class UrlFormatting:
    """Appearance of clickable links inside message bodies."""

    enabled: bool = True
    color: str = "#3498DB"
    underline: bool = True
    hover: bool = True
    hover_text: str = DEFAULT_URL_HOVER_TEXT


@dataclass(frozen=True, slots=True)
class DebugOptions:
    enabled: bool = False
    placeholder_resolution: bool = False
    format_processing: bool = False


@dataclass(frozen=True, slots=True)
class ChatSettings:
    """Global toggles that shape composition and messaging."""

    default_channel: str = "global"
    chat_format: str = DEFAULT_CHAT_FORMAT
    cooldown_seconds: int = 0
    use_group_format: bool = True
    allow_self_messaging: bool = False
    format_hover: bool = True
    player_formatting: bool = False
    url_formatting: UrlFormatting = field(default_factory=UrlFormatting)
    debug: DebugOptions = field(default_factory=DebugOptions)


@dataclass(frozen=True, slots=True)
class Notice:
    """Catalog message addressed to one player."""

    recipient_id: str
    key: str
    bindings: Mapping[str, str] = field(default_factory=dict)
