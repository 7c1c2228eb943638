from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from chat_composer.models import ChatUser
from chat_composer.registry import PreferenceWriter, UserRegistry

from conftest import InlineExecutor, MemoryUserStore


def test_connect_loads_stored_preferences(registry: UserRegistry, store: MemoryUserStore) -> None:
    store.saved["a"] = ChatUser(id="a", current_channel="vip", msg_toggle=False)

    user = registry.connect("a")

    assert user.current_channel == "vip"
    assert user.msg_toggle is False
    assert registry.connect("a") is user
    assert "a" in registry
    assert len(registry) == 1


def test_connect_defaults_when_store_fails(
    registry: UserRegistry, store: MemoryUserStore, caplog: pytest.LogCaptureFixture
) -> None:
    store.fail_loads = True

    with caplog.at_level(logging.ERROR):
        user = registry.connect("a")

    assert user == ChatUser(id="a", current_channel="global")
    assert "Failed to load preferences for a" in caplog.text


def test_get_connects_lazily(registry: UserRegistry) -> None:
    assert registry.find("a") is None

    user = registry.get("a")

    assert registry.find("a") is user


def test_disconnect_flushes_and_removes(registry: UserRegistry, store: MemoryUserStore) -> None:
    user = registry.connect("a")
    user.last_messaged = "b"

    removed = registry.disconnect("a")

    assert removed is user
    assert "a" not in registry
    assert store.saved["a"].id == "a"
    assert registry.disconnect("a") is None


def test_writer_receives_detached_snapshots(registry: UserRegistry, store: MemoryUserStore) -> None:
    user = registry.connect("a")
    registry.set_channel(user, "vip")
    user.current_channel = "mutated-later"

    assert store.saved["a"].current_channel == "vip"
    assert store.saved["a"] is not user


def test_set_channel_skips_unchanged_channel(
    registry: UserRegistry, store: MemoryUserStore
) -> None:
    user = registry.connect("a")

    registry.set_channel(user, "global")

    assert store.saves == []


def test_link_conversation_is_symmetric(registry: UserRegistry) -> None:
    first, second = registry.connect("a"), registry.connect("b")

    registry.link_conversation(first, second)

    assert first.last_messaged == "b"
    assert second.last_messaged == "a"


def test_social_spies_lists_flagged_users(registry: UserRegistry) -> None:
    registry.connect("a")
    spy = registry.connect("b")
    registry.toggle_social_spy(spy)

    assert registry.social_spies() == [spy]


def test_flush_failure_is_logged_and_state_kept(
    registry: UserRegistry, store: MemoryUserStore, caplog: pytest.LogCaptureFixture
) -> None:
    store.fail_saves = True
    user = registry.connect("a")

    with caplog.at_level(logging.WARNING):
        enabled = registry.toggle_messages(user)

    assert enabled is False
    assert user.msg_toggle is False
    events = [
        json.loads(record.getMessage())
        for record in caplog.records
        if record.name == "chat"
    ]
    assert events[-1]["event"] == "preference_flush_failed"
    assert events[-1]["reason"] == "disk full"
    assert events[-1]["sender_id"] == "a"


def test_background_writer_persists_off_thread() -> None:
    store = MemoryUserStore()
    threads: list[str] = []
    original_save = store.save

    def recording_save(user: ChatUser) -> None:
        threads.append(threading.current_thread().name)
        original_save(user)

    store.save = recording_save  # type: ignore[method-assign]
    writer = PreferenceWriter(store)
    registry = UserRegistry(store, writer, lambda: "global")
    user = registry.connect("a")

    registry.toggle_social_spy(user)
    writer.close()

    assert store.saved["a"].social_spy is True
    assert threads and threads[0].startswith("chat-prefs")


def test_closed_writer_drops_updates(caplog: pytest.LogCaptureFixture) -> None:
    executor = ThreadPoolExecutor(max_workers=1)
    writer = PreferenceWriter(MemoryUserStore(), executor=executor)
    executor.shutdown()

    with caplog.at_level(logging.WARNING):
        assert writer.submit(ChatUser(id="a", current_channel="global")) is None

    assert "Preference writer is closed" in caplog.text


def test_inline_executor_is_not_shut_down_by_writer(store: MemoryUserStore) -> None:
    writer = PreferenceWriter(store, executor=InlineExecutor())
    writer.close()

    writer.submit(ChatUser(id="a", current_channel="global"))

    assert "a" in store.saved


def test_peek_reads_stored_preferences_without_registering(
    registry: UserRegistry, store: MemoryUserStore
) -> None:
    store.saved["a"] = ChatUser(id="a", current_channel="trade", msg_toggle=False)

    peeked = registry.peek("a")

    assert peeked.msg_toggle is False
    assert "a" not in registry
    assert registry.peek("a") is not peeked
    assert registry.peek(registry.connect("a").id) is registry.get("a")
