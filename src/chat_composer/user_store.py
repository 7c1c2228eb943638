"""SQLite backed storage for per-player chat preferences."""

from __future__ import annotations

import sqlite3
import threading
from contextlib import closing
from pathlib import Path
from typing import Iterator, Protocol

from .models import ChatUser

_DB_PRAGMA = "PRAGMA journal_mode=WAL;" "PRAGMA synchronous=NORMAL;"


class UserPreferenceStore(Protocol):
    def load(self, user_id: str, default_channel: str) -> ChatUser: ...

    def save(self, user: ChatUser) -> None: ...


class SQLiteUserStore:
    """Persisted chat preferences keyed by stable player id.

    The connection is shared between the event thread (loads on join) and the
    preference writer thread, so every statement runs under one lock.
    """

    def __init__(self, path: Path):
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self._path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._setup()

    # ------------------------------------------------------------------
    # Schema initialisation
    # ------------------------------------------------------------------
    def _setup(self) -> None:
        with self._lock, closing(self._conn.cursor()) as cur:
            for statement in _DB_PRAGMA.split(";"):
                if statement.strip():
                    cur.execute(statement)
            cur.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    current_channel TEXT,
                    msg_toggle INTEGER NOT NULL DEFAULT 1,
                    social_spy INTEGER NOT NULL DEFAULT 0
                );
                """
            )
            self._migrate_users(cur)
            self._conn.commit()

    def _migrate_users(self, cur: sqlite3.Cursor) -> None:
        cur.execute("PRAGMA table_info(users)")
        columns = {str(row[1]) for row in cur.fetchall()}
        expected = {"id", "current_channel", "msg_toggle", "social_spy"}
        if columns == expected:
            return
        if columns == {"uuid", "msg_toggle", "social_spy"}:
            cur.executescript(
                """
                ALTER TABLE users RENAME TO users_legacy;
                CREATE TABLE users (
                    id TEXT PRIMARY KEY,
                    current_channel TEXT,
                    msg_toggle INTEGER NOT NULL DEFAULT 1,
                    social_spy INTEGER NOT NULL DEFAULT 0
                );
                INSERT INTO users(id, msg_toggle, social_spy)
                SELECT uuid, msg_toggle, social_spy FROM users_legacy;
                DROP TABLE users_legacy;
                """
            )
            return
        raise RuntimeError("Unsupported users schema detected")

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------
    def load(self, user_id: str, default_channel: str) -> ChatUser:
        with self._lock, closing(self._conn.cursor()) as cur:
            cur.execute(
                "SELECT current_channel, msg_toggle, social_spy FROM users WHERE id=?",
                (user_id,),
            )
            row = cur.fetchone()
        if row is None:
            return ChatUser(id=user_id, current_channel=default_channel)
        return ChatUser(
            id=user_id,
            current_channel=str(row["current_channel"] or default_channel),
            msg_toggle=bool(row["msg_toggle"]),
            social_spy=bool(row["social_spy"]),
        )

    def save(self, user: ChatUser) -> None:
        with self._lock, closing(self._conn.cursor()) as cur:
            cur.execute(
                "INSERT INTO users(id, current_channel, msg_toggle, social_spy)"
                " VALUES(?, ?, ?, ?)"
                " ON CONFLICT(id) DO UPDATE SET current_channel=excluded.current_channel,"
                " msg_toggle=excluded.msg_toggle, social_spy=excluded.social_spy",
                (user.id, user.current_channel, int(user.msg_toggle), int(user.social_spy)),
            )
            self._conn.commit()

    def iter_users(self) -> Iterator[ChatUser]:
        with self._lock, closing(self._conn.cursor()) as cur:
            cur.execute(
                "SELECT id, current_channel, msg_toggle, social_spy FROM users ORDER BY id"
            )
            rows = cur.fetchall()
        for row in rows:
            yield ChatUser(
                id=str(row["id"]),
                current_channel=str(row["current_channel"] or ""),
                msg_toggle=bool(row["msg_toggle"]),
                social_spy=bool(row["social_spy"]),
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def close(self) -> None:
        with self._lock:
            self._conn.close()
