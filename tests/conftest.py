from __future__ import annotations

import sys
from concurrent.futures import Executor, Future
from pathlib import Path
from typing import Any, Callable

import pytest


def _ensure_src_on_path() -> None:
    root = Path(__file__).resolve().parents[1]
    src = root / "src"
    src_str = str(src)
    if src_str not in sys.path:
        sys.path.insert(0, src_str)


_ensure_src_on_path()

from chat_composer.models import ChatUser  # noqa: E402
from chat_composer.registry import PreferenceWriter, UserRegistry  # noqa: E402


class MemoryUserStore:
    def __init__(self) -> None:
        self.saved: dict[str, ChatUser] = {}
        self.saves: list[ChatUser] = []
        self.fail_loads = False
        self.fail_saves = False

    def load(self, user_id: str, default_channel: str) -> ChatUser:
        if self.fail_loads:
            raise OSError("store offline")
        stored = self.saved.get(user_id)
        if stored is None:
            return ChatUser(id=user_id, current_channel=default_channel)
        return stored.snapshot()

    def save(self, user: ChatUser) -> None:
        if self.fail_saves:
            raise OSError("disk full")
        self.saves.append(user)
        self.saved[user.id] = user


class InlineExecutor(Executor):
    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future[Any]:
        future: Future[Any] = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


@pytest.fixture
def store() -> MemoryUserStore:
    return MemoryUserStore()


@pytest.fixture
def writer(store: MemoryUserStore) -> PreferenceWriter:
    return PreferenceWriter(store, executor=InlineExecutor())


@pytest.fixture
def registry(store: MemoryUserStore, writer: PreferenceWriter) -> UserRegistry:
    return UserRegistry(store, writer, lambda: "global")
