#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from concurrent.futures import Executor, Future
from pathlib import Path
from time import perf_counter
from typing import Any, Callable

ROOT = Path(__file__).resolve().parent.parent
SRC_PATH = ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.append(str(SRC_PATH))

from chat_composer.composer import MessageComposer  # noqa: E402
from chat_composer.engine import ChatEngine  # noqa: E402
from chat_composer.groups import CallableGroupProvider  # noqa: E402
from chat_composer.messages import MessageCatalog  # noqa: E402
from chat_composer.models import (  # noqa: E402
    Channel,
    ChatSettings,
    ChatUser,
    GroupFormat,
    Location,
    Player,
)
from chat_composer.placeholders import PlaceholderResolver  # noqa: E402
from chat_composer.registry import PreferenceWriter, UserRegistry  # noqa: E402
from chat_composer.templates import ChatSnapshot, SnapshotHolder, TemplateStore  # noqa: E402


def _make_snapshot() -> ChatSnapshot:
    placeholders = {f"layer{index}": f"<gray>%layer{index + 1}%</gray>" for index in range(8)}
    placeholders["layer8"] = "%rank%"
    placeholders.update({"rank": "[%tier%]", "tier": "<gold>Gold</gold>", "server": "Lobby"})
    return ChatSnapshot(
        settings=ChatSettings(
            chat_format="%layer0% %channel_prefix%%group_prefix%%name%: %message%"
        ),
        templates=TemplateStore(
            channels={
                "global": Channel(name="global", prefix="global"),
                "local": Channel(name="local", radius=64, prefix="local"),
            },
            groups={"admin": GroupFormat(name="admin", name_style="admin", prefix="admin")},
            hovers={"player-info": "<gray>%server%</gray>\n%rank% %player_name%"},
            channel_prefixes={"global": "<dark_gray>[G]</dark_gray>", "local": "[L]"},
            group_prefixes={"admin": "<red>[Admin]</red>"},
            name_styles={"default": "<white>%player_name%", "admin": "<red>%player_name%"},
        ),
        placeholders=PlaceholderResolver(placeholders),
        messages=MessageCatalog(),
    )


class _NullStore:
    __slots__ = ()

    def load(self, user_id: str, default_channel: str) -> ChatUser:
        return ChatUser(id=user_id, current_channel=default_channel)

    def save(self, user: ChatUser) -> None:
        return None


class _InlineExecutor(Executor):
    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future[Any]:
        future: Future[Any] = Future()
        future.set_result(fn(*args, **kwargs))
        return future


def _make_players(count: int) -> list[Player]:
    return [
        Player(
            id=str(index),
            name=f"Player{index}",
            permissions=frozenset({"group.admin"} if index % 10 == 0 else ()),
            location=Location("world", float(index % 100), 64.0, float(index // 100)),
        )
        for index in range(count)
    ]


def benchmark_resolution(iterations: int) -> None:
    resolver = _make_snapshot().placeholders
    start = perf_counter()
    for _ in range(iterations):
        resolver.resolve("%layer0% %rank% %server% %unknown%")
    elapsed = perf_counter() - start
    throughput = iterations / elapsed if elapsed else float("inf")
    print(f"resolution: {iterations} iterations in {elapsed:.3f}s ({throughput:.1f} res/s)")


def benchmark_composition(iterations: int) -> None:
    composer = MessageComposer(
        _make_snapshot(), groups=CallableGroupProvider(lambda player: "admin")
    )
    sender = _make_players(1)[0]
    channel = Channel(name="global", prefix="global")
    body = "check <this> out https://example.com/path?x=1 and tell me"
    start = perf_counter()
    for _ in range(iterations):
        composer.compose(sender, channel, body)
    elapsed = perf_counter() - start
    throughput = iterations / elapsed if elapsed else float("inf")
    print(f"composition: {iterations} iterations in {elapsed:.3f}s ({throughput:.1f} msg/s)")


def benchmark_processing(iterations: int, players: int = 200) -> None:
    store = _NullStore()
    holder = SnapshotHolder(_make_snapshot())
    registry = UserRegistry(
        store, PreferenceWriter(store, executor=_InlineExecutor()), lambda: "global"
    )
    engine = ChatEngine(holder, registry)
    online = _make_players(players)
    for player in online:
        engine.player_joined(player)
    engine.switch_channel(online[1], "local")
    start = perf_counter()
    for index in range(iterations):
        engine.handle_chat(online[index % 2], "hello https://example.com", online)
    elapsed = perf_counter() - start
    throughput = iterations / elapsed if elapsed else float("inf")
    print(f"processing: {iterations} iterations in {elapsed:.3f}s ({throughput:.1f} msg/s)")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Benchmark placeholder resolution and chat composition hot paths",
    )
    parser.add_argument(
        "--resolve-count",
        type=int,
        default=5000,
        help="Number of placeholder resolution iterations",
    )
    parser.add_argument(
        "--compose-count",
        type=int,
        default=2000,
        help="Number of composition iterations",
    )
    parser.add_argument(
        "--process-count",
        type=int,
        default=1000,
        help="Number of end-to-end chat events",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    benchmark_resolution(args.resolve_count)
    benchmark_composition(args.compose_count)
    benchmark_processing(args.process_count)


if __name__ == "__main__":
    main()
