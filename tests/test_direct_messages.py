from __future__ import annotations

import pytest

from chat_composer.direct_messages import MSGTOGGLE_BYPASS_PERMISSION, DirectMessenger
from chat_composer.errors import (
    MessagesDisabled,
    NobodyToReply,
    PlayerNotFound,
    PlayerNotOnline,
    ReplyUsageError,
    SelfMessage,
    UsageError,
)
from chat_composer.messages import MessageCatalog
from chat_composer.models import Channel, ChatSettings, ChatUser, Notice, Player
from chat_composer.placeholders import PlaceholderResolver
from chat_composer.registry import UserRegistry
from chat_composer.templates import ChatSnapshot, SnapshotHolder, TemplateStore

from conftest import MemoryUserStore

ALICE = Player(id="a", name="Alice")
BOB = Player(id="b", name="Bob")
BOBBY = Player(id="bb", name="Bobby")
SPY = Player(id="s", name="Spy")


def _messenger(registry: UserRegistry, **settings: object) -> DirectMessenger:
    holder = SnapshotHolder(
        ChatSnapshot(
            settings=ChatSettings(**settings),  # type: ignore[arg-type]
            templates=TemplateStore(channels={"global": Channel(name="global")}),
            placeholders=PlaceholderResolver({}),
            messages=MessageCatalog(),
        )
    )
    for player in (ALICE, BOB, BOBBY, SPY):
        registry.connect(player.id)
    return DirectMessenger(holder, registry)


def test_send_delivers_to_both_sides_and_links_conversation(registry: UserRegistry) -> None:
    messenger = _messenger(registry)

    exchange = messenger.send(ALICE, "bob", "  hi <b>there</b> ", [ALICE, BOB, BOBBY])

    assert exchange.target == BOB
    assert exchange.body == "hi <b>there</b>"
    assert exchange.deliveries == (
        Notice("a", "msg-to-format", {"player": "Bob", "message": "hi \\<b\\>there\\</b\\>"}),
        Notice("b", "msg-from-format", {"player": "Alice", "message": "hi \\<b\\>there\\</b\\>"}),
    )
    assert registry.get("a").last_messaged == "b"
    assert registry.get("b").last_messaged == "a"


def test_send_requires_exact_name_match(registry: UserRegistry) -> None:
    messenger = _messenger(registry)

    with pytest.raises(PlayerNotFound) as exc:
        messenger.send(ALICE, "bo", "hi", [ALICE, BOB, BOBBY])

    assert exc.value.bindings == {"player": "bo"}
    assert registry.get("a").last_messaged is None


def test_send_to_offline_player_is_not_found(registry: UserRegistry) -> None:
    messenger = _messenger(registry)

    with pytest.raises(PlayerNotFound):
        messenger.send(ALICE, "Bob", "hi", [ALICE])


def test_send_requires_body(registry: UserRegistry) -> None:
    messenger = _messenger(registry)

    with pytest.raises(UsageError):
        messenger.send(ALICE, "Bob", "   ", [ALICE, BOB])


def test_self_message_is_policy_gated(registry: UserRegistry) -> None:
    with pytest.raises(SelfMessage):
        _messenger(registry).send(ALICE, "Alice", "hi", [ALICE])

    exchange = _messenger(registry, allow_self_messaging=True).send(
        ALICE, "alice", "hi", [ALICE]
    )
    assert [notice.recipient_id for notice in exchange.deliveries] == ["a", "a"]


def test_recipient_with_messages_disabled_blocks_without_mutation(
    registry: UserRegistry, store: MemoryUserStore
) -> None:
    messenger = _messenger(registry)
    registry.get("b").msg_toggle = False
    saves = len(store.saves)

    with pytest.raises(MessagesDisabled) as exc:
        messenger.send(ALICE, "Bob", "hi", [ALICE, BOB])

    assert exc.value.key == "error.player-messages-disabled"
    assert exc.value.bindings == {"player": "Bob"}
    assert registry.get("a").last_messaged is None
    assert registry.get("b").last_messaged is None
    assert len(store.saves) == saves


def test_disabled_recipient_outside_session_is_not_registered(
    registry: UserRegistry, store: MemoryUserStore
) -> None:
    messenger = _messenger(registry)
    registry.disconnect("b")
    store.saved["b"] = ChatUser(id="b", current_channel="global", msg_toggle=False)

    with pytest.raises(MessagesDisabled):
        messenger.send(ALICE, "Bob", "hi", [ALICE, BOB])

    assert "b" not in registry
    assert registry.get("a").last_messaged is None


def test_bypass_permission_ignores_message_toggle(registry: UserRegistry) -> None:
    messenger = _messenger(registry)
    registry.get("b").msg_toggle = False
    staff = Player(id="a", name="Alice", permissions=frozenset({MSGTOGGLE_BYPASS_PERMISSION}))

    exchange = messenger.send(staff, "Bob", "hi", [staff, BOB])

    assert exchange.target == BOB


def test_social_spies_receive_copies_except_participants(registry: UserRegistry) -> None:
    messenger = _messenger(registry)
    registry.get("s").social_spy = True
    registry.get("b").social_spy = True

    exchange = messenger.send(ALICE, "Bob", "psst", [ALICE, BOB, SPY])

    spy_copies = [notice for notice in exchange.deliveries if notice.key == "socialspy-format"]
    assert spy_copies == [
        Notice("s", "socialspy-format", {"sender": "Alice", "receiver": "Bob", "message": "psst"})
    ]


def test_offline_spies_are_skipped(registry: UserRegistry) -> None:
    messenger = _messenger(registry)
    registry.get("s").social_spy = True

    exchange = messenger.send(ALICE, "Bob", "psst", [ALICE, BOB])

    assert all(notice.key != "socialspy-format" for notice in exchange.deliveries)


def test_reply_uses_last_conversation_partner(registry: UserRegistry) -> None:
    messenger = _messenger(registry)
    messenger.send(ALICE, "Bob", "ping", [ALICE, BOB])

    exchange = messenger.reply(BOB, "pong", [ALICE, BOB])

    assert exchange.target == ALICE
    assert exchange.deliveries[0] == Notice(
        "b", "msg-to-format", {"player": "Alice", "message": "pong"}
    )


def test_reply_errors(registry: UserRegistry) -> None:
    messenger = _messenger(registry)

    with pytest.raises(ReplyUsageError):
        messenger.reply(BOB, "", [ALICE, BOB])
    with pytest.raises(NobodyToReply):
        messenger.reply(BOB, "pong", [ALICE, BOB])

    messenger.send(ALICE, "Bob", "ping", [ALICE, BOB])
    with pytest.raises(PlayerNotOnline):
        messenger.reply(BOB, "pong", [BOB])


def test_toggles_flip_and_persist(registry: UserRegistry, store: MemoryUserStore) -> None:
    messenger = _messenger(registry)

    assert messenger.toggle_messages(ALICE) == Notice("a", "msgtoggle-disabled")
    assert store.saved["a"].msg_toggle is False
    assert messenger.toggle_messages(ALICE) == Notice("a", "msgtoggle-enabled")

    assert messenger.toggle_social_spy(ALICE) == Notice("a", "socialspy-enabled")
    assert store.saved["a"].social_spy is True
    assert messenger.toggle_social_spy(ALICE) == Notice("a", "socialspy-disabled")
