"""Entry points invoked by the host for chat events and commands."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final

from yaml import YAMLError

from .composer import ComposedMessage, MessageComposer
from .config import ChatConfig
from .direct_messages import DirectExchange, DirectMessenger
from .errors import CooldownActive, UserError
from .groups import GroupProvider, NoGroupProvider
from .markup import MarkupDeserializer, bind_literal
from .models import Channel, ChatUser, Notice, Player
from .placeholders import DynamicProvider
from .registry import PreferenceWriter, UserRegistry
from .routing import ChannelRouter
from .spatial import SpatialIndex
from .structured_logging import log_event
from .templates import ChatSnapshot, SnapshotHolder
from .user_store import SQLiteUserStore, UserPreferenceStore
from .utils import CooldownGuard

COOLDOWN_BYPASS_PERMISSION: Final = "chat.cooldown.bypass"

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RenderedNotice:
    recipient_id: str
    key: str
    display: Any


@dataclass(frozen=True, slots=True)
class ChatDelivery:
    """Outcome of a chat event.

    Accepted messages carry the channel, the recipient ids and the display
    object; rejected ones carry only the notice for the sender.
    """

    channel: Channel | None
    recipients: frozenset[str] = frozenset()
    display: Any = None
    template: str = ""
    degraded: bool = False
    notices: tuple[RenderedNotice, ...] = field(default_factory=tuple)

    @property
    def accepted(self) -> bool:
        return self.channel is not None


class ChatEngine:
    """Wire the snapshot, registry and collaborators into chat operations."""

    def __init__(
        self,
        holder: SnapshotHolder,
        registry: UserRegistry,
        *,
        deserializer: MarkupDeserializer = bind_literal,
        space: SpatialIndex | None = None,
        groups: GroupProvider | None = None,
        provider: DynamicProvider | None = None,
        config_path: Path | None = None,
        cooldown: CooldownGuard | None = None,
    ):
        self._holder = holder
        self._registry = registry
        self._deserializer = deserializer
        self._groups = groups or NoGroupProvider()
        self._provider = provider
        self._config_path = config_path
        self._router = ChannelRouter(holder, registry, space=space)
        self._messenger = DirectMessenger(holder, registry)
        self._cooldown = cooldown or CooldownGuard(holder.current.settings.cooldown_seconds)
        self._closers: list[Any] = []

    @classmethod
    def from_config(
        cls,
        config: ChatConfig,
        *,
        store: UserPreferenceStore | None = None,
        config_path: Path | None = None,
        **collaborators: Any,
    ) -> ChatEngine:
        """Build an engine with its own preference writer and, by default, SQLite store."""

        holder = SnapshotHolder(ChatSnapshot.from_config(config))
        owned_store: SQLiteUserStore | None = None
        if store is None:
            owned_store = SQLiteUserStore(config.database_path)
            store = owned_store
        writer = PreferenceWriter(store)
        registry = UserRegistry(
            store, writer, lambda: holder.current.settings.default_channel
        )
        engine = cls(holder, registry, config_path=config_path, **collaborators)
        engine._closers.append(writer)
        if owned_store is not None:
            engine._closers.append(owned_store)
        return engine

    @property
    def snapshot(self) -> ChatSnapshot:
        return self._holder.current

    @property
    def registry(self) -> UserRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    def player_joined(self, player: Player) -> ChatUser:
        return self._registry.connect(player.id)

    def player_left(self, player: Player) -> None:
        self._registry.disconnect(player.id)
        self._cooldown.forget(player.id)

    def close(self) -> None:
        self._registry.save_all()
        for closer in self._closers:
            closer.close()
        self._closers.clear()

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------
    def handle_chat(self, sender: Player, raw_body: str, online: Iterable[Player]) -> ChatDelivery:
        started = time.perf_counter()
        snapshot = self._holder.current
        user = self._registry.get(sender.id)
        channel_name: str | None = user.current_channel

        try:
            remaining = self._cooldown.remaining(
                sender.id, bypass=sender.has_permission(COOLDOWN_BYPASS_PERMISSION)
            )
            if remaining:
                raise CooldownActive(seconds=str(remaining))

            channel = self._router.resolve_channel(user)
            channel_name = channel.name
            self._router.check_permission(sender, channel)

            composer = MessageComposer(snapshot, groups=self._groups, provider=self._provider)
            composed = composer.compose(sender, channel, raw_body)
            self._cooldown.record(sender.id)
        except UserError as exc:
            notice = self._render_notice(Notice(sender.id, exc.key, exc.bindings), snapshot)
            log_event(
                "chat_rejected",
                level=logging.INFO,
                channel=channel_name,
                sender_id=sender.id,
                recipients=None,
                outcome=exc.key,
                latency_ms=(time.perf_counter() - started) * 1000,
            )
            return ChatDelivery(channel=None, notices=(notice,))

        display, degraded = self._render(composed, raw_body, sender)
        recipients = frozenset(self._router.route(sender, channel, online))
        log_event(
            "chat_delivered",
            level=logging.INFO,
            channel=channel.name,
            sender_id=sender.id,
            recipients=recipients,
            outcome="degraded" if degraded else "success",
            latency_ms=(time.perf_counter() - started) * 1000,
        )
        return ChatDelivery(
            channel=channel,
            recipients=recipients,
            display=display,
            template=composed.template,
            degraded=degraded,
        )

    def _render(self, composed: ComposedMessage, raw_body: str, sender: Player) -> tuple[Any, bool]:
        try:
            return self._deserializer(composed.template, composed.bindings), False
        except Exception:
            logger.warning(
                "Failed to deserialize chat format %r; falling back to plain text",
                composed.template,
                exc_info=True,
            )
            log_event(
                "format_degraded",
                level=logging.WARNING,
                channel=composed.channel.name,
                sender_id=sender.id,
                recipients=None,
                outcome="fallback",
                latency_ms=None,
                extra={"template": composed.template},
            )
            return raw_body, True

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def switch_channel(self, player: Player, name: str) -> RenderedNotice:
        snapshot = self._holder.current
        try:
            switch = self._router.switch_channel(player, name)
        except UserError as exc:
            return self._render_notice(Notice(player.id, exc.key, exc.bindings), snapshot)
        key = "channel-changed" if switch.changed else "channel-already-active"
        return self._render_notice(
            Notice(player.id, key, {"channel": switch.channel.label}), snapshot
        )

    def send_direct(
        self,
        sender: Player,
        target_name: str,
        body: str,
        online: Iterable[Player],
    ) -> tuple[RenderedNotice, ...]:
        return self._direct(
            sender,
            lambda players: self._messenger.send(sender, target_name, body, players),
            online,
        )

    def reply(
        self, sender: Player, body: str, online: Iterable[Player]
    ) -> tuple[RenderedNotice, ...]:
        return self._direct(
            sender, lambda players: self._messenger.reply(sender, body, players), online
        )

    def toggle_messages(self, player: Player) -> RenderedNotice:
        return self._render_notice(self._messenger.toggle_messages(player), self._holder.current)

    def toggle_social_spy(self, player: Player) -> RenderedNotice:
        return self._render_notice(self._messenger.toggle_social_spy(player), self._holder.current)

    def reload_command(self, player: Player) -> RenderedNotice:
        key = "plugin-reloaded" if self.reload() else "error.generic"
        return self._render_notice(Notice(player.id, key), self._holder.current)

    def _direct(
        self,
        sender: Player,
        action: Callable[[list[Player]], DirectExchange],
        online: Iterable[Player],
    ) -> tuple[RenderedNotice, ...]:
        started = time.perf_counter()
        snapshot = self._holder.current
        players = list(online)
        try:
            exchange = action(players)
        except UserError as exc:
            return (self._render_notice(Notice(sender.id, exc.key, exc.bindings), snapshot),)

        log_event(
            "direct_message",
            level=logging.INFO,
            channel=None,
            sender_id=sender.id,
            recipients=[notice.recipient_id for notice in exchange.deliveries],
            outcome="success",
            latency_ms=(time.perf_counter() - started) * 1000,
            extra={"target_id": exchange.target.id},
        )
        return tuple(self._render_notice(notice, snapshot) for notice in exchange.deliveries)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    def reload(self, path: Path | None = None) -> bool:
        """Load the configuration again and swap it in; keep the old one on failure."""

        source = path or self._config_path
        if source is None:
            logger.warning("Reload requested but no configuration path is known")
            return False
        started = time.perf_counter()
        try:
            config = ChatConfig.from_file(source)
            snapshot = ChatSnapshot.from_config(config)
        except (OSError, ValueError, YAMLError) as exc:
            logger.error("Failed to reload configuration from %s: %s", source, exc)
            log_event(
                "reload_failed",
                level=logging.ERROR,
                channel=None,
                sender_id=None,
                recipients=None,
                outcome="failure",
                latency_ms=(time.perf_counter() - started) * 1000,
                extra={"path": str(source), "reason": str(exc)},
            )
            return False

        self._holder.swap(snapshot)
        self._cooldown.update_seconds(snapshot.settings.cooldown_seconds)
        log_event(
            "config_reloaded",
            level=logging.INFO,
            channel=snapshot.settings.default_channel,
            sender_id=None,
            recipients=None,
            outcome="success",
            latency_ms=(time.perf_counter() - started) * 1000,
            extra={"channels": len(snapshot.templates.channels)},
        )
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _render_notice(self, notice: Notice, snapshot: ChatSnapshot) -> RenderedNotice:
        template = snapshot.messages.template(notice.key)
        try:
            display = self._deserializer(template, notice.bindings)
        except Exception:
            logger.warning("Failed to deserialize message %s", notice.key, exc_info=True)
            display = bind_literal(template, notice.bindings)
        return RenderedNotice(recipient_id=notice.recipient_id, key=notice.key, display=display)
