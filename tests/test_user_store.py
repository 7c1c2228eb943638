from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from chat_composer.models import ChatUser
from chat_composer.user_store import SQLiteUserStore


def test_absent_user_gets_defaults(tmp_path: Path) -> None:
    store = SQLiteUserStore(tmp_path / "users.sqlite")

    user = store.load("123", "global")

    assert user == ChatUser(id="123", current_channel="global")


def test_preferences_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "users.sqlite"
    store = SQLiteUserStore(path)
    store.save(
        ChatUser(id="123", current_channel="vip", last_messaged="9", msg_toggle=False, social_spy=True)
    )
    store.save(ChatUser(id="123", current_channel="trade", msg_toggle=False, social_spy=True))
    store.close()

    reopened = SQLiteUserStore(path)
    user = reopened.load("123", "global")

    assert user == ChatUser(id="123", current_channel="trade", msg_toggle=False, social_spy=True)
    assert [stored.id for stored in reopened.iter_users()] == ["123"]


def test_missing_channel_column_value_uses_default(tmp_path: Path) -> None:
    path = tmp_path / "users.sqlite"
    store = SQLiteUserStore(path)
    store.close()
    with sqlite3.connect(path) as conn:
        conn.execute("INSERT INTO users(id, msg_toggle, social_spy) VALUES('7', 0, 0)")

    user = SQLiteUserStore(path).load("7", "global")

    assert user.current_channel == "global"
    assert user.msg_toggle is False


def test_legacy_schema_is_migrated(tmp_path: Path) -> None:
    path = tmp_path / "legacy.sqlite"
    with sqlite3.connect(path) as conn:
        conn.execute(
            "CREATE TABLE users (uuid TEXT PRIMARY KEY, msg_toggle INTEGER, social_spy INTEGER)"
        )
        conn.execute("INSERT INTO users VALUES ('abc', 0, 1)")

    store = SQLiteUserStore(path)

    user = store.load("abc", "global")
    assert user == ChatUser(id="abc", current_channel="global", msg_toggle=False, social_spy=True)


def test_unknown_schema_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "odd.sqlite"
    with sqlite3.connect(path) as conn:
        conn.execute("CREATE TABLE users (name TEXT)")

    with pytest.raises(RuntimeError, match="Unsupported users schema"):
        SQLiteUserStore(path)
