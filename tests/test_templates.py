from __future__ import annotations

import pytest

from chat_composer.messages import MessageCatalog
from chat_composer.models import Channel, ChatSettings, GroupFormat
from chat_composer.placeholders import PlaceholderResolver
from chat_composer.templates import (
    FALLBACK_NAME_STYLE,
    ChatSnapshot,
    SnapshotHolder,
    TemplateStore,
)


def _store(**overrides: object) -> TemplateStore:
    values: dict[str, object] = {
        "channels": {"global": Channel(name="global")},
        "groups": {"admin": GroupFormat(name="admin", prefix="admin")},
        "hovers": {"player-info": "Name: %player_name%"},
        "channel_prefixes": {"global": "<gray>[G]</gray>"},
        "group_prefixes": {"admin": "<red>[Admin]</red>"},
        "name_styles": {"default": "<white>%player_name%"},
    }
    values.update(overrides)
    return TemplateStore(**values)  # type: ignore[arg-type]


def test_prefix_lookup_falls_back_to_literal_reference() -> None:
    store = _store()

    assert store.channel_prefix("global") == "<gray>[G]</gray>"
    assert store.channel_prefix("[Trade]") == "[Trade]"
    assert store.channel_prefix("") == ""
    assert store.channel_prefix(None) == ""
    assert store.group_prefix("admin") == "<red>[Admin]</red>"
    assert store.group_prefix("<gold>VIP") == "<gold>VIP"


def test_name_style_falls_back_to_default_then_builtin() -> None:
    store = _store(name_styles={"default": "<white>%player_name%", "fancy": "<b>%player_name%"})

    assert store.name_style("fancy") == "<b>%player_name%"
    assert store.name_style("missing") == "<white>%player_name%"
    assert _store(name_styles={}).name_style("missing") == FALLBACK_NAME_STYLE


def test_lookups_return_none_or_empty_for_unknown_names() -> None:
    store = _store()

    assert store.channel("nope") is None
    assert store.channel(None) is None
    assert store.group("nope") is None
    assert store.hover_template("nope") == ""


def test_template_store_is_read_only() -> None:
    store = _store()

    with pytest.raises(TypeError):
        store.channels["vip"] = Channel(name="vip")  # type: ignore[index]


def _snapshot(channels: dict[str, Channel], default: str = "global") -> ChatSnapshot:
    return ChatSnapshot(
        settings=ChatSettings(default_channel=default),
        templates=TemplateStore(channels=channels),
        placeholders=PlaceholderResolver({}),
        messages=MessageCatalog(),
    )


def test_snapshot_default_channel() -> None:
    snapshot = _snapshot({"global": Channel(name="global")})

    assert snapshot.default_channel() == Channel(name="global")
    assert _snapshot({}, default="global").default_channel() is None


def test_holder_swaps_whole_snapshot() -> None:
    first = _snapshot({"global": Channel(name="global")})
    second = _snapshot({"vip": Channel(name="vip")}, default="vip")
    holder = SnapshotHolder(first)

    previous = holder.swap(second)

    assert previous is first
    assert holder.current is second
    assert holder.current.channel("global") is None
    assert first.channel("global") is not None
