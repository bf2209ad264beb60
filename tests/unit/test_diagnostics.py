from __future__ import annotations

from typing import Any

import pytest

from logshipper.core import diagnostics as diag


def test_disabled_by_default_emits_nothing() -> None:
    captured: list[dict[str, Any]] = []
    diag.set_writer_for_tests(captured.append)

    diag.warn("scheduler", "should not appear")
    diag.debug("scheduler", "nor this")

    assert captured == []


def test_enabled_payload_carries_component_and_fields(
    capture_diagnostics: list[dict[str, Any]],
) -> None:
    diag.warn("delivery", "batch delivery failed", items=3, error="boom")

    assert len(capture_diagnostics) == 1
    payload = capture_diagnostics[0]
    assert payload["level"] == "WARN"
    assert payload["logger"] == "logshipper.diagnostics"
    assert payload["component"] == "delivery"
    assert payload["message"] == "batch delivery failed"
    assert payload["items"] == 3
    assert payload["error"] == "boom"
    assert isinstance(payload["timestamp"], float)


def test_rate_limit_key_suppresses_repeats(
    capture_diagnostics: list[dict[str, Any]],
) -> None:
    for _ in range(5):
        diag.warn("hooks", "dropped", _rate_limit_key="same")
    diag.debug("hooks", "other key", _rate_limit_key="other")
    diag.warn("hooks", "unkeyed")
    diag.warn("hooks", "unkeyed")

    messages = [p["message"] for p in capture_diagnostics]
    assert messages == ["dropped", "other key", "unkeyed", "unkeyed"]


def test_writer_failure_is_contained(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOGSHIPPER_CORE__INTERNAL_LOGGING_ENABLED", "true")

    def _broken(payload: dict[str, Any]) -> None:
        raise RuntimeError("stderr closed")

    diag.set_writer_for_tests(_broken)

    diag.warn("transport", "still fine")


def test_default_writer_emits_json_line(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("LOGSHIPPER_CORE__INTERNAL_LOGGING_ENABLED", "true")

    diag.debug("shutdown", "final flush", items=2)

    err = capsys.readouterr().err
    assert '"component":"shutdown"' in err
    assert '"items":2' in err
    assert err.endswith("\n")
