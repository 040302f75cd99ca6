# pylint: disable=missing-module-docstring,missing-function-docstring

import json
from datetime import datetime, timezone
from typing import Any

import pytest

from lifecycle.enums.phase import Phase
from observability import logger


@pytest.fixture
def captured(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    lines: list[str] = []
    # Patch the explicit output sink used by logger
    monkeypatch.setattr(logger, "_print", lines.append)
    return lines


def test_log_event_emits_valid_jsonl(captured: list[str]) -> None:
    """
    Contract:
    - log_event emits exactly one JSONL line
    - payload is serialized as-is
    - output sink is patchable
    """
    payload: dict[str, Any] = {
        "event_type": "TEST",
        "value": 123,
    }

    logger.log_event(payload)

    assert len(captured) == 1
    assert "\n" not in captured[0]
    assert json.loads(captured[0]) == payload


def test_non_json_values_fall_back_to_str(captured: list[str]) -> None:
    when = datetime(2024, 1, 1, tzinfo=timezone.utc)

    logger.log_event({"event_type": "TEST", "phase": Phase.READY, "when": when})

    decoded = json.loads(captured[0])
    assert decoded["phase"] == "READY"
    assert decoded["when"] == str(when)


def test_unserializable_event_emits_fallback(captured: list[str]) -> None:
    event: dict[str, Any] = {"ts_ms": 7, "event_type": "TEST"}
    event["self"] = event  # circular

    logger.log_event(event)

    decoded = json.loads(captured[0])
    assert decoded["event_type"] == "LOGGER_SERIALIZATION_ERROR"
    assert decoded["ts_ms"] == 7


def test_closed_sink_never_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(line: str) -> None:
        raise ValueError("I/O operation on closed file")

    monkeypatch.setattr(logger, "_print", broken)

    logger.log_event({"event_type": "TEST"})
