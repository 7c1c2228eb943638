"""Compose chat lines from channel, group and name templates."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Final

from .errors import NoDefaultChannel
from .groups import GroupProvider, NoGroupProvider, select_group_format
from .markup import escape_markup, quote_argument
from .models import DEFAULT_HOVER_TEMPLATE, Channel, GroupFormat, Player, UrlFormatting
from .placeholders import DynamicProvider, apply_dynamic
from .templates import ChatSnapshot

FORMAT_BYPASS_PERMISSION: Final = "chat.format.color"
MESSAGE_BINDING: Final = "message"

URL_PATTERN: Final = re.compile(
    r"https?://[\w-]+(?:\.[\w-]+)+(?:[\w.,@?^=%&:/~+#-]*[\w@?^=%&/~+#-])?"
)
_HEX_COLOR_RE = re.compile(r"#[0-9a-fA-F]{6}")
_NAMED_COLOR_RE = re.compile(r"[a-z_]+")
_FINAL_TOKEN_RE = re.compile(
    r"%(player_name|player_display_name|display_name|channel_name|default-message|message)%"
)
_DISPLAY_NAME_TOKEN: Final = "%player_display_name%"

__all__ = [
    "FORMAT_BYPASS_PERMISSION",
    "ChannelPlan",
    "ComposedMessage",
    "GenericPlan",
    "MessageComposer",
    "MessageRun",
    "OverridePlan",
    "format_url",
    "split_message_runs",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MessageRun:
    """Contiguous slice of a raw message body."""

    text: str
    is_url: bool = False


@dataclass(frozen=True, slots=True)
class ChannelPlan:
    """Channel supplies its own line format; group decoration is skipped."""

    format: str


@dataclass(frozen=True, slots=True)
class OverridePlan:
    """Group supplies the whole line format."""

    group: GroupFormat
    format: str


@dataclass(frozen=True, slots=True)
class GenericPlan:
    """Line assembled from the configured chat format."""

    channel_prefix: str
    group_prefix: str
    name: str
    hover: str


FormatPlan = ChannelPlan | OverridePlan | GenericPlan


@dataclass(frozen=True, slots=True)
class ComposedMessage:
    """Template ready for markup deserialization plus its body binding."""

    template: str
    body: str
    channel: Channel
    plan: FormatPlan

    @property
    def bindings(self) -> Mapping[str, str]:
        return {MESSAGE_BINDING: self.body}


def split_message_runs(text: str) -> Iterator[MessageRun]:
    """Yield plain and URL runs of ``text`` in order."""

    last_end = 0
    for match in URL_PATTERN.finditer(text):
        start, end = match.span()
        if start > last_end:
            yield MessageRun(text[last_end:start])
        yield MessageRun(match.group(0), is_url=True)
        last_end = end
    if last_end < len(text):
        yield MessageRun(text[last_end:])


class MessageComposer:
    """Build the decorated line for one message against a config snapshot."""

    def __init__(
        self,
        snapshot: ChatSnapshot,
        *,
        groups: GroupProvider | None = None,
        provider: DynamicProvider | None = None,
    ):
        self._snapshot = snapshot
        self._groups = groups or NoGroupProvider()
        self._provider = provider

    def compose(self, sender: Player, channel: Channel | None, raw_body: str) -> ComposedMessage:
        channel = channel or self._snapshot.default_channel()
        if channel is None:
            raise NoDefaultChannel()

        body = self.format_body(sender, raw_body)
        plan = self.plan(sender, channel)
        if isinstance(plan, ChannelPlan):
            template = self._render_channel(sender, channel, plan)
        elif isinstance(plan, OverridePlan):
            template = self._render_override(sender, channel, plan)
        else:
            template = self._render_generic(sender, channel, plan)

        if self._snapshot.settings.debug.format_processing:
            logger.info("Final format before deserialization: %s", template)
        return ComposedMessage(template=template, body=body, channel=channel, plan=plan)

    # ------------------------------------------------------------------
    # Message body
    # ------------------------------------------------------------------
    def format_body(self, sender: Player, raw_body: str) -> str:
        settings = self._snapshot.settings
        allow_markup = settings.player_formatting or sender.has_permission(
            FORMAT_BYPASS_PERMISSION
        )
        links = settings.url_formatting
        parts: list[str] = []
        for run in split_message_runs(raw_body):
            if run.is_url and links.enabled:
                parts.append(format_url(run.text, links))
            elif allow_markup:
                parts.append(run.text)
            else:
                parts.append(escape_markup(run.text))
        return "".join(parts)

    # ------------------------------------------------------------------
    # Plan selection
    # ------------------------------------------------------------------
    def plan(self, sender: Player, channel: Channel) -> FormatPlan:
        snapshot = self._snapshot
        store = snapshot.templates

        if channel.format:
            return ChannelPlan(format=channel.format)

        group: GroupFormat | None = None
        if snapshot.settings.use_group_format:
            group = select_group_format(sender, store.groups, self._groups)
        if group is not None and group.format:
            return OverridePlan(group=group, format=group.format)

        channel_prefix = _with_separator(self._expand(sender, store.channel_prefix(channel.prefix)))
        group_prefix = ""
        if group is not None:
            group_prefix = _with_separator(self._expand(sender, store.group_prefix(group.prefix)))

        style = store.name_style(group.name_style if group is not None else "default")
        name = self._expand(sender, style).replace("%player_name%", _DISPLAY_NAME_TOKEN)

        hover = store.hover_template(channel.hover) or store.hover_template(DEFAULT_HOVER_TEMPLATE)
        hover = self._expand(sender, hover).replace("%player_name%", sender.name)

        return GenericPlan(
            channel_prefix=channel_prefix,
            group_prefix=group_prefix,
            name=name,
            hover=hover,
        )

    # ------------------------------------------------------------------
    # Template rendering
    # ------------------------------------------------------------------
    def _expand(self, sender: Player, text: str) -> str:
        """Resolve custom placeholders, then run the dynamic provider once."""

        if not text:
            return text
        text = self._snapshot.placeholders.resolve_custom(text)
        return apply_dynamic(text, player=sender, provider=self._provider)

    def _render_channel(self, sender: Player, channel: Channel, plan: ChannelPlan) -> str:
        template = self._expand(sender, plan.format)
        return self._finish(sender, channel, template, show_channel=False)

    def _render_override(self, sender: Player, channel: Channel, plan: OverridePlan) -> str:
        store = self._snapshot.templates
        group = plan.group

        template = self._expand(sender, plan.format)
        prefix = self._expand(sender, store.group_prefix(group.prefix))
        suffix = self._expand(sender, group.suffix)
        styled_name = (
            self._expand(sender, store.name_style(group.name_style))
            .replace("%player_name%", _DISPLAY_NAME_TOKEN)
            .replace("%display_name%", _DISPLAY_NAME_TOKEN)
        )
        template = (
            template.replace("%prefix%", prefix)
            .replace("%suffix%", suffix)
            .replace("%name-style%", styled_name)
        )
        return self._finish(sender, channel, template)

    def _render_generic(self, sender: Player, channel: Channel, plan: GenericPlan) -> str:
        settings = self._snapshot.settings

        name = plan.name
        if settings.format_hover and plan.hover:
            name = (
                f"<hover:show_text:'{quote_argument(plan.hover)}'>"
                f"<click:suggest_command:/msg {sender.name} >{plan.name}</click></hover>"
            )

        template = (
            self._expand(sender, settings.chat_format)
            .replace("%channel_prefix%", plan.channel_prefix)
            .replace("%group_prefix%", plan.group_prefix)
            .replace("%name%", name)
        )
        return self._finish(sender, channel, template)

    def _finish(
        self, sender: Player, channel: Channel, template: str, *, show_channel: bool = True
    ) -> str:
        if show_channel and channel.display_name:
            template = f"{channel.display_name} {template}"
        values = {
            "player_name": sender.name,
            "player_display_name": sender.display_name,
            "display_name": sender.display_name,
            "channel_name": channel.label,
            "default-message": f"<white><{MESSAGE_BINDING}></white>",
            "message": f"<{MESSAGE_BINDING}>",
        }
        return _FINAL_TOKEN_RE.sub(lambda match: values[match.group(1)], template)


def format_url(url: str, options: UrlFormatting) -> str:
    """Wrap ``url`` into a clickable, optionally decorated markup unit."""

    label = url
    if options.underline:
        label = f"<u>{label}</u>"
    color = options.color
    if color:
        if _HEX_COLOR_RE.fullmatch(color) or _NAMED_COLOR_RE.fullmatch(color):
            label = f"<{color}>{label}</{color}>"
        else:
            logger.warning("Invalid color in URL format: %s", color)
    if options.hover and options.hover_text:
        label = f"<hover:show_text:'{quote_argument(options.hover_text)}'>{label}</hover>"
    return f"<click:open_url:'{quote_argument(url)}'>{label}</click>"


def _with_separator(prefix: str) -> str:
    return f"{prefix} " if prefix else ""
