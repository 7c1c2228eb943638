"""Helpers for producing markup strings handed to the external deserializer."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Final, Protocol

ESCAPE_MARKER: Final = "\\"
_MARKUP_DELIMITERS: Final = ("\\", "<", ">")
_BINDING_TAG_RE = re.compile(r"<([a-z0-9_-]+)>")

__all__ = [
    "MarkupDeserializer",
    "bind_literal",
    "escape_markup",
    "quote_argument",
]


class MarkupDeserializer(Protocol):
    """Turns a templated markup string into the host's display object."""

    def __call__(self, template: str, bindings: Mapping[str, str]) -> Any: ...


def escape_markup(text: str) -> str:
    """Prefix every markup delimiter with the escape marker."""

    escaped = text
    for delimiter in _MARKUP_DELIMITERS:
        escaped = escaped.replace(delimiter, f"{ESCAPE_MARKER}{delimiter}")
    return escaped


def quote_argument(text: str) -> str:
    """Escape ``text`` for use inside a single-quoted tag argument."""

    return text.replace("\\", "\\\\").replace("'", "\\'")


def bind_literal(template: str, bindings: Mapping[str, str]) -> str:
    """Substitute ``<name>`` binding tags without interpreting any other markup."""

    def _replace(match: re.Match[str]) -> str:
        return bindings.get(match.group(1), match.group(0))

    return _BINDING_TAG_RE.sub(_replace, template)
