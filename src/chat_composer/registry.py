"""In-memory registry of connected chat users."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from functools import partial

from .models import ChatUser
from .structured_logging import log_event
from .user_store import UserPreferenceStore

logger = logging.getLogger(__name__)


class PreferenceWriter:
    """Fire-and-forget persistence of user snapshots on a background worker."""

    __slots__ = ("_store", "_executor", "_owns_executor")

    def __init__(self, store: UserPreferenceStore, *, executor: Executor | None = None):
        self._store = store
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="chat-prefs"
        )

    def submit(self, user: ChatUser) -> Future[None] | None:
        snapshot = user.snapshot()
        try:
            future = self._executor.submit(self._store.save, snapshot)
        except RuntimeError:
            logger.warning("Preference writer is closed; dropping update for %s", snapshot.id)
            return None
        future.add_done_callback(partial(self._report, snapshot))
        return future

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    @staticmethod
    def _report(user: ChatUser, future: Future[None]) -> None:
        error = future.exception()
        if error is None:
            return
        logger.warning("Failed to save preferences for %s: %s", user.id, error)
        log_event(
            "preference_flush_failed",
            level=logging.WARNING,
            channel=user.current_channel,
            sender_id=user.id,
            recipients=None,
            outcome="failure",
            latency_ms=None,
            extra={"reason": str(error)},
        )


class UserRegistry:
    """Session state for connected players.

    The registry is the source of truth while a player is online; the store
    only sees detached snapshots written after preference changes.
    """

    def __init__(
        self,
        store: UserPreferenceStore,
        writer: PreferenceWriter,
        default_channel: Callable[[], str],
    ):
        self._store = store
        self._writer = writer
        self._default_channel = default_channel
        self._users: dict[str, ChatUser] = {}

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._users

    def __len__(self) -> int:
        return len(self._users)

    def __iter__(self) -> Iterator[ChatUser]:
        return iter(list(self._users.values()))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def connect(self, user_id: str) -> ChatUser:
        existing = self._users.get(user_id)
        if existing is not None:
            return existing
        user = self._load(user_id)
        self._users[user_id] = user
        return user

    def peek(self, user_id: str) -> ChatUser:
        """Return the session user, or a stored copy that is not registered."""

        return self._users.get(user_id) or self._load(user_id)

    def _load(self, user_id: str) -> ChatUser:
        default_channel = self._default_channel()
        try:
            return self._store.load(user_id, default_channel)
        except Exception:
            logger.exception("Failed to load preferences for %s; using defaults", user_id)
            return ChatUser(id=user_id, current_channel=default_channel)

    def disconnect(self, user_id: str) -> ChatUser | None:
        user = self._users.pop(user_id, None)
        if user is not None:
            self._writer.submit(user)
        return user

    def get(self, user_id: str) -> ChatUser:
        return self._users.get(user_id) or self.connect(user_id)

    def find(self, user_id: str | None) -> ChatUser | None:
        if user_id is None:
            return None
        return self._users.get(user_id)

    def save_all(self) -> None:
        for user in list(self._users.values()):
            self._writer.submit(user)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def set_channel(self, user: ChatUser, channel_name: str) -> None:
        if user.current_channel == channel_name:
            return
        user.current_channel = channel_name
        self._writer.submit(user)

    def toggle_messages(self, user: ChatUser) -> bool:
        user.msg_toggle = not user.msg_toggle
        self._writer.submit(user)
        return user.msg_toggle

    def toggle_social_spy(self, user: ChatUser) -> bool:
        user.social_spy = not user.social_spy
        self._writer.submit(user)
        return user.social_spy

    def link_conversation(self, first: ChatUser, second: ChatUser) -> None:
        first.last_messaged = second.id
        second.last_messaged = first.id

    def social_spies(self) -> list[ChatUser]:
        return [user for user in self._users.values() if user.social_spy]
