from __future__ import annotations

import json
import logging
from collections.abc import Collection, Iterable, Mapping, MutableMapping
from typing import IO, Any, Final

CHAT_LOGGER_NAME: Final = "chat"
_REDACT_KEYS: Final = frozenset({"password", "token", "secret"})
_MAX_STRING_LENGTH: Final = 512
_MAX_SEQUENCE_ITEMS: Final = 20
_LOGGER = logging.getLogger(CHAT_LOGGER_NAME)


def configure_chat_logging(level: int, *, stream: IO[str] | None = None) -> None:
    """Attach a bare JSON-lines handler to the ``chat`` logger once."""

    if _LOGGER.handlers:
        return
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter("%(message)s"))
    _LOGGER.addHandler(handler)
    _LOGGER.setLevel(level)
    _LOGGER.propagate = False


def log_event(
    event: str,
    *,
    level: int,
    channel: str | None,
    sender_id: str | None,
    recipients: Iterable[str] | None,
    outcome: str | None,
    latency_ms: float | None,
    extra: Mapping[str, Any] | None = None,
) -> None:
    if not _LOGGER.isEnabledFor(level):
        return
    payload = _build_payload(
        event,
        channel=channel,
        sender_id=sender_id,
        recipients=recipients,
        outcome=outcome,
        latency_ms=latency_ms,
    )
    for key, value in (extra or {}).items():
        if key is None:
            continue
        name = str(key)
        payload[name] = "***" if name.lower() in _REDACT_KEYS else _sanitize_value(value)

    _LOGGER.log(level, json.dumps(payload, ensure_ascii=False, separators=(",", ":")))


def _build_payload(
    event: str,
    *,
    channel: str | None,
    sender_id: str | None,
    recipients: Iterable[str] | None,
    outcome: str | None,
    latency_ms: float | None,
) -> MutableMapping[str, Any]:
    if recipients is None:
        recipient_count = None
    elif isinstance(recipients, Collection):
        recipient_count = len(recipients)
    else:
        recipient_count = sum(1 for _ in recipients)
    return {
        "event": event,
        "channel": channel,
        "sender_id": sender_id,
        "recipients": recipient_count,
        "outcome": outcome,
        "latency_ms": round(latency_ms, 3) if latency_ms is not None else None,
    }


def _sanitize_value(value: Any) -> Any:
    if isinstance(value, str):
        if len(value) > _MAX_STRING_LENGTH:
            return f"{value[:_MAX_STRING_LENGTH]}…"
        return value
    if isinstance(value, bool | int | float) or value is None:
        return value
    if isinstance(value, list | tuple | set | frozenset):
        items = list(value)[:_MAX_SEQUENCE_ITEMS]
        return [_sanitize_value(item) for item in items]
    return _sanitize_value(str(value))
