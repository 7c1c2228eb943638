from __future__ import annotations

import json
import logging

import pytest

from chat_composer.structured_logging import CHAT_LOGGER_NAME, log_event


def _last_payload(caplog: pytest.LogCaptureFixture) -> dict[str, object]:
    records = [record for record in caplog.records if record.name == CHAT_LOGGER_NAME]
    return json.loads(records[-1].getMessage())


def test_log_event_emits_json_payload(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO):
        log_event(
            "chat_delivered",
            level=logging.INFO,
            channel="global",
            sender_id="a",
            recipients=iter(["a", "b", "c"]),
            outcome="success",
            latency_ms=1.23456,
            extra={"note": "ok"},
        )

    payload = _last_payload(caplog)
    assert payload == {
        "event": "chat_delivered",
        "channel": "global",
        "sender_id": "a",
        "recipients": 3,
        "outcome": "success",
        "latency_ms": 1.235,
        "note": "ok",
    }


def test_log_event_redacts_and_truncates(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO):
        log_event(
            "reload_failed",
            level=logging.ERROR,
            channel=None,
            sender_id=None,
            recipients=None,
            outcome="failure",
            latency_ms=None,
            extra={"Token": "secret", "reason": "x" * 600, "path": object()},
        )

    payload = _last_payload(caplog)
    assert payload["Token"] == "***"
    assert payload["recipients"] is None
    reason = payload["reason"]
    assert isinstance(reason, str)
    assert len(reason) == 513
    assert reason.endswith("…")
    assert isinstance(payload["path"], str)
