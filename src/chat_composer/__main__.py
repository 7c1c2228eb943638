from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .composer import MessageComposer
from .config import ChatConfig
from .errors import UserError
from .groups import CallableGroupProvider, GroupProvider, NoGroupProvider
from .markup import bind_literal
from .models import Player
from .structured_logging import configure_chat_logging, log_event
from .templates import ChatSnapshot

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Validate a chat configuration and preview composed messages",
    )
    parser.add_argument(
        "--config",
        required=True,
        help="Path to the YAML configuration file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Validate the configuration and print a channel summary",
    )
    parser.add_argument(
        "--preview",
        metavar="TEXT",
        help="Compose TEXT as a chat message and print the resulting markup",
    )
    parser.add_argument("--player", default="Player", help="Sender name for --preview")
    parser.add_argument("--channel", help="Channel for --preview (default channel if omitted)")
    parser.add_argument("--group", help="Primary permission group for --preview")
    parser.add_argument(
        "--permission",
        action="append",
        default=[],
        help="Permission node held by the preview sender (repeatable)",
    )
    return parser.parse_args()


def describe(snapshot: ChatSnapshot) -> list[str]:
    settings = snapshot.settings
    lines = [f"default channel: {settings.default_channel}"]
    for channel in snapshot.templates.channels.values():
        scope = f"radius {channel.radius:g}" if channel.is_proximity else "membership"
        gate = channel.permission or "-"
        line = f"channel {channel.name}: {scope}, permission {gate}"
        lines.append(f"{line}, own format" if channel.format else line)
    for group in snapshot.templates.groups.values():
        mode = "format override" if group.format else f"name style {group.name_style}"
        lines.append(f"group {group.name}: {mode}, priority {group.priority}")
    lines.append(f"placeholders: {len(snapshot.placeholders.keys)}")
    for key in sorted(snapshot.placeholders.keys):
        value = snapshot.placeholders.resolve_custom(f"%{key}%")
        if "⚠️" in value:
            lines.append(f"placeholder {key} does not resolve: {value}")
    return lines


def preview(snapshot: ChatSnapshot, args: argparse.Namespace) -> str:
    permissions = set(args.permission)
    groups: GroupProvider = NoGroupProvider()
    if args.group:
        permissions.add(f"group.{args.group}")
        groups = CallableGroupProvider(lambda _player: args.group)
    sender = Player(id=args.player.lower(), name=args.player, permissions=frozenset(permissions))

    channel = snapshot.channel(args.channel) if args.channel else None
    if args.channel and channel is None:
        raise ValueError(f"Unknown channel: {args.channel}")

    composed = MessageComposer(snapshot, groups=groups).compose(sender, channel, args.preview)
    return bind_literal(composed.template, composed.bindings)


def main() -> None:
    args = parse_args()
    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    configure_chat_logging(log_level)

    config_path = Path(args.config)
    try:
        config = ChatConfig.from_file(config_path)
        snapshot = ChatSnapshot.from_config(config)
        if args.preview is not None:
            print(preview(snapshot, args))
        else:
            print("\n".join(describe(snapshot)))
    except (FileNotFoundError, ValueError, OSError, UserError) as exc:
        logger.error("Failed to load chat configuration: %s", exc)
        log_event(
            "startup_failed",
            level=logging.ERROR,
            channel=args.channel,
            sender_id=None,
            recipients=None,
            outcome="failure",
            latency_ms=None,
            extra={"reason": str(exc), "path": str(config_path)},
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
