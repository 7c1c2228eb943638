"""Expansion of ``%name%`` placeholders with nested definitions."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from typing import Final

from .models import Player

PLACEHOLDER_PATTERN: Final = re.compile(r"%(\w+(?:-\w+)*)%")
MAX_RECURSION_DEPTH: Final = 10
RECURSION_LIMIT_MARKER: Final = "⚠️ Recursion limit"
CIRCULAR_REFERENCE_MARKER: Final = "⚠️ Circular reference"

DynamicProvider = Callable[[Player, str], str]

logger = logging.getLogger(__name__)


class PlaceholderResolver:
    """Resolve custom placeholders against an immutable table.

    The dependency graph is computed once for the whole table. Every call to
    :meth:`resolve` expands the keys referenced by the text depth-first with
    a per-call memo, a depth bound and an in-progress set for cycle detection.
    Resolution never raises: cycles and runaway chains are replaced by
    visible markers.
    """

    __slots__ = ("_table", "_dependencies", "_max_depth", "_warned", "_trace")

    def __init__(
        self,
        table: Mapping[str, str],
        *,
        max_depth: int = MAX_RECURSION_DEPTH,
        trace: bool = False,
    ):
        self._table: dict[str, str] = {str(key): str(value) for key, value in table.items()}
        self._dependencies: dict[str, frozenset[str]] = {
            key: frozenset(placeholder_keys(value)) for key, value in self._table.items()
        }
        self._max_depth = max_depth
        self._warned: set[tuple[str, str]] = set()
        self._trace = trace

    @property
    def keys(self) -> frozenset[str]:
        return frozenset(self._table)

    def dependencies(self, key: str) -> frozenset[str]:
        return self._dependencies.get(key, frozenset())

    def resolve(
        self,
        text: str | None,
        *,
        player: Player | None = None,
        provider: DynamicProvider | None = None,
    ) -> str:
        """Return ``text`` with custom and then dynamic placeholders applied."""

        return apply_dynamic(self.resolve_custom(text), player=player, provider=provider)

    def resolve_custom(self, text: str | None) -> str:
        if not text:
            return ""
        mentioned = placeholder_keys(text)
        if not mentioned:
            return text

        resolved: dict[str, str] = {}
        in_progress: set[str] = set()
        for key in mentioned:
            self._expand(key, resolved, in_progress, 0)

        def _substitute(match: re.Match[str]) -> str:
            return resolved.get(match.group(1), match.group(0))

        return PLACEHOLDER_PATTERN.sub(_substitute, text)

    def _expand(
        self,
        key: str,
        resolved: dict[str, str],
        in_progress: set[str],
        depth: int,
    ) -> str:
        if depth > self._max_depth:
            self._warn_once(key, "recursion_limit")
            return RECURSION_LIMIT_MARKER
        if key in in_progress:
            self._warn_once(key, "circular_reference")
            return CIRCULAR_REFERENCE_MARKER
        if key in resolved:
            return resolved[key]

        value = self._table.get(key)
        if value is None:
            return f"%{key}%"

        in_progress.add(key)
        expansions: dict[str, str] = {}
        for dependency in self._dependencies.get(key, ()):
            if dependency in self._table:
                expansions[dependency] = self._expand(
                    dependency, resolved, in_progress, depth + 1
                )
        in_progress.discard(key)

        if expansions:
            value = PLACEHOLDER_PATTERN.sub(
                lambda match: expansions.get(match.group(1), match.group(0)), value
            )
        resolved[key] = value
        if self._trace and depth == 0:
            logger.info("Resolved placeholder %%%s%% = %s", key, value)
        return value

    def _warn_once(self, key: str, reason: str) -> None:
        marker = (key, reason)
        if marker in self._warned:
            return
        self._warned.add(marker)
        if reason == "recursion_limit":
            logger.warning("Maximum placeholder recursion depth exceeded for key: %s", key)
        else:
            logger.warning("Circular placeholder dependency detected for key: %s", key)


def apply_dynamic(
    text: str,
    *,
    player: Player | None,
    provider: DynamicProvider | None,
) -> str:
    """Run the identity-bound provider over ``text`` when both are available."""

    if provider is None or player is None:
        return text
    try:
        return provider(player, text)
    except Exception:
        logger.warning("Dynamic placeholder provider failed for %s", player.name, exc_info=True)
        return text


def placeholder_keys(text: str) -> list[str]:
    """Return the distinct placeholder keys in ``text`` in order of appearance."""

    return list(dict.fromkeys(match.group(1) for match in PLACEHOLDER_PATTERN.finditer(text)))
