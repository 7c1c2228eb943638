from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Final

from yaml import safe_load

from .messages import MessageCatalog
from .models import (
    DEFAULT_CHAT_FORMAT,
    DEFAULT_HOVER_TEMPLATE,
    DEFAULT_URL_HOVER_TEXT,
    Channel,
    ChatSettings,
    DebugOptions,
    GroupFormat,
    UrlFormatting,
)
from .templates import TemplateStore

DEFAULT_CHANNEL: Final[str] = "global"
DEFAULT_DATABASE_FILE: Final[Path] = Path("chat_users.sqlite")

_TEMPLATE_SECTIONS: Final[dict[str, str]] = {
    "hovers": "hovers",
    "channel-prefixes": "channel_prefixes",
    "group-prefixes": "group_prefixes",
    "name-styles": "name_styles",
}

__all__ = [
    "DEFAULT_CHANNEL",
    "DEFAULT_DATABASE_FILE",
    "ChatConfig",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ChatConfig:
    """Parsed chat configuration file."""

    settings: ChatSettings = field(default_factory=ChatSettings)
    templates: TemplateStore = field(default_factory=TemplateStore)
    placeholders: Mapping[str, str] = field(default_factory=dict)
    messages: MessageCatalog = field(default_factory=MessageCatalog)
    database_path: Path = DEFAULT_DATABASE_FILE

    def __post_init__(self) -> None:
        object.__setattr__(self, "placeholders", MappingProxyType(dict(self.placeholders)))

    @classmethod
    def from_file(cls, path: Path) -> ChatConfig:
        path = path.expanduser()
        data = _load_yaml(path)
        path = path.resolve()
        return cls.from_mapping(data, base_dir=path.parent)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, base_dir: Path | None = None) -> ChatConfig:
        base = base_dir or Path.cwd()

        settings = _parse_settings(data)
        channels = _parse_channels(data.get("channels"))
        if not channels:
            logger.warning("No channels configured!")
        elif settings.default_channel not in channels:
            logger.warning(
                "Default channel '%s' is not configured; chat will be rejected until it is",
                settings.default_channel,
            )

        templates = TemplateStore(
            channels=channels,
            groups=_parse_groups(data.get("groups")),
            **_parse_templates(data.get("templates")),
        )
        placeholders = _to_string_mapping(data.get("placeholders"), "placeholders")

        messages = MessageCatalog()
        messages_file = data.get("messages-file")
        if messages_file:
            messages = MessageCatalog.from_file(_resolve_path(base, messages_file, None))
        messages = messages.merged(MessageCatalog.from_mapping(data.get("messages")))

        storage = data.get("storage") or {}
        if not isinstance(storage, Mapping):
            raise ValueError("Configuration field 'storage' must be a mapping if provided")
        database_path = _resolve_path(base, storage.get("database"), DEFAULT_DATABASE_FILE)

        return cls(
            settings=settings,
            templates=templates,
            placeholders=placeholders,
            messages=messages,
            database_path=database_path,
        )


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with path.open("r", encoding="utf-8") as file:
        data = safe_load(file) or {}

    if not isinstance(data, Mapping):  # pragma: no cover - configuration error path
        raise ValueError("Configuration file must contain a mapping at the top level")
    return dict(data)


def _parse_settings(data: Mapping[str, Any]) -> ChatSettings:
    features = _section(data, "features")
    url_section = _section(data, "url-formatting")
    debug_section = _section(data, "debug")

    default_channel = str(data.get("default-channel") or DEFAULT_CHANNEL).strip()
    if not default_channel:
        raise ValueError("Configuration field 'default-channel' must not be empty")

    cooldown = _to_int(data.get("chat-cooldown", 0), "chat-cooldown")
    if cooldown < 0:
        raise ValueError("Configuration field 'chat-cooldown' cannot be negative")

    chat_format = data.get("chat-format")
    debug_enabled = _to_bool(debug_section.get("enabled", False), "debug.enabled")

    return ChatSettings(
        default_channel=default_channel,
        chat_format=str(chat_format) if chat_format else DEFAULT_CHAT_FORMAT,
        cooldown_seconds=cooldown,
        use_group_format=_to_bool(
            features.get("use-group-format", True), "features.use-group-format"
        ),
        allow_self_messaging=_to_bool(
            features.get("allow-self-messaging", False), "features.allow-self-messaging"
        ),
        format_hover=_to_bool(features.get("format-hover", True), "features.format-hover"),
        player_formatting=_to_bool(
            features.get("player-formatting", False), "features.player-formatting"
        ),
        url_formatting=UrlFormatting(
            enabled=_to_bool(url_section.get("enabled", True), "url-formatting.enabled"),
            color=str(url_section.get("color", "#3498DB") or "").strip(),
            underline=_to_bool(url_section.get("underline", True), "url-formatting.underline"),
            hover=_to_bool(url_section.get("hover", True), "url-formatting.hover"),
            hover_text=str(url_section.get("hover-text", DEFAULT_URL_HOVER_TEXT)),
        ),
        debug=DebugOptions(
            enabled=debug_enabled,
            placeholder_resolution=debug_enabled
            and _to_bool(
                debug_section.get("placeholder-resolution", False),
                "debug.placeholder-resolution",
            ),
            format_processing=debug_enabled
            and _to_bool(
                debug_section.get("format-processing", False), "debug.format-processing"
            ),
        ),
    )


def _parse_channels(raw: object) -> dict[str, Channel]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValueError("Configuration field 'channels' must be a mapping if provided")

    channels: dict[str, Channel] = {}
    for key, item in raw.items():
        name = str(key).strip()
        if not name:
            raise ValueError("Configuration field 'channels' contains an empty channel name")
        entry = item or {}
        if not isinstance(entry, Mapping):
            raise ValueError(f"Configuration field 'channels.{name}' must be a mapping")
        channels[name] = Channel(
            name=name,
            permission=_to_text(entry.get("permission")),
            radius=_to_float(entry.get("radius", -1), f"channels.{name}.radius"),
            prefix=_to_text(entry.get("prefix")),
            hover=_to_text(entry.get("hover")) or DEFAULT_HOVER_TEMPLATE,
            display_name=_to_text(entry.get("display-name")),
            format=_to_text(entry.get("format")),
        )
    return channels


def _parse_groups(raw: object) -> dict[str, GroupFormat]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValueError("Configuration field 'groups' must be a mapping if provided")

    groups: dict[str, GroupFormat] = {}
    for key, item in raw.items():
        name = str(key).strip()
        entry = item or {}
        if not isinstance(entry, Mapping):
            raise ValueError(f"Configuration field 'groups.{name}' must be a mapping")
        groups[name] = GroupFormat(
            name=name,
            name_style=_to_text(entry.get("name-style")) or "default",
            prefix=_to_text(entry.get("prefix")),
            format=_to_text(entry.get("format")),
            suffix=_to_text(entry.get("suffix")),
            priority=_to_int(entry.get("priority", 0), f"groups.{name}.priority"),
        )
    return groups


def _parse_templates(raw: object) -> dict[str, dict[str, str]]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValueError("Configuration field 'templates' must be a mapping if provided")

    parsed: dict[str, dict[str, str]] = {}
    for section, attribute in _TEMPLATE_SECTIONS.items():
        parsed[attribute] = _to_string_mapping(raw.get(section), f"templates.{section}")
    return parsed


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    raw = data.get(name)
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Configuration field '{name}' must be a mapping if provided")
    return raw


def _to_string_mapping(raw: object, field_name: str) -> dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Configuration field '{field_name}' must be a mapping if provided")
    values: dict[str, str] = {}
    for key, value in raw.items():
        if key is None or value is None:
            continue
        values[str(key)] = str(value)
    return values


def _to_text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _to_bool(value: object, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "on", "1"}:
            return True
        if lowered in {"false", "no", "off", "0"}:
            return False
    raise ValueError(f"Configuration field '{field_name}' must be a boolean; got {value!r}")


def _to_int(value: object, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Configuration field '{field_name}' must be an integer; got {value!r}")
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise ValueError(
            f"Configuration field '{field_name}' must be an integer; got {value!r}"
        ) from exc


def _to_float(value: object, field_name: str) -> float:
    if isinstance(value, bool):
        raise ValueError(f"Configuration field '{field_name}' must be a number; got {value!r}")
    try:
        return float(str(value).strip())
    except ValueError as exc:
        raise ValueError(
            f"Configuration field '{field_name}' must be a number; got {value!r}"
        ) from exc


def _resolve_path(base_dir: Path, raw_value: object, default: Path | None) -> Path:
    if raw_value:
        candidate = Path(str(raw_value)).expanduser()
    elif default is not None:
        candidate = default.expanduser()
    else:  # pragma: no cover - callers always pass a value or a default
        raise ValueError("A path value is required")
    if not candidate.is_absolute():
        candidate = (base_dir / candidate).resolve()
    return candidate
