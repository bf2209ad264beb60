from __future__ import annotations

import pytest
from pydantic import ValidationError

from logshipper.core.settings import (
    IntakeSettings,
    Settings,
    TransportSettings,
)


def test_defaults_match_intake_limits() -> None:
    s = Settings()
    t = s.transport

    assert t.retries == 5
    assert t.send_interval_ms == 3000
    assert t.send_immediate is False
    assert t.payload_size_limit == 5_138_022
    assert t.item_size_limit == 996_147
    assert t.max_batch_items == 995
    assert t.max_concurrent_deliveries is None
    assert t.flush_interval_seconds == 3.0
    assert s.core.internal_logging_enabled is False
    assert s.shutdown.install_handlers is True


def test_env_overrides_nested_fields(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOGSHIPPER_TRANSPORT__SEND_INTERVAL_MS", "1000")
    monkeypatch.setenv("LOGSHIPPER_TRANSPORT__SERVICE", "checkout")
    monkeypatch.setenv("LOGSHIPPER_TRANSPORT__RETRIES", "2")
    monkeypatch.setenv("LOGSHIPPER_INTAKE__API_KEY", "secret-key")
    monkeypatch.setenv("LOGSHIPPER_INTAKE__SITE", "datadoghq.eu")

    s = Settings()

    assert s.transport.flush_interval_seconds == 1.0
    assert s.transport.service == "checkout"
    assert s.transport.retries == 2
    assert s.intake.api_key is not None
    assert s.intake.api_key.get_secret_value() == "secret-key"
    assert "secret-key" not in s.model_dump_json()
    assert s.intake.endpoint == "https://http-intake.logs.datadoghq.eu/api/v2/logs"


def test_send_immediate_disables_timer() -> None:
    t = TransportSettings(send_immediate=True)
    assert t.flush_interval_seconds is None
    assert TransportSettings(send_interval_ms=0).flush_interval_seconds is None


def test_blank_metadata_normalized_to_none() -> None:
    t = TransportSettings(ddsource="  ", ddtags="env:prod", service="")
    assert t.ddsource is None
    assert t.ddtags == "env:prod"
    assert t.service is None


def test_item_limit_cannot_exceed_payload_limit() -> None:
    with pytest.raises(ValidationError):
        TransportSettings(payload_size_limit=100, item_size_limit=200)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"retries": -1},
        {"max_batch_items": 0},
        {"max_concurrent_deliveries": 0},
        {"retry_base_delay": 5.0, "retry_max_delay": 1.0},
    ],
)
def test_invalid_transport_values_rejected(kwargs: dict) -> None:
    with pytest.raises(ValidationError):
        TransportSettings(**kwargs)


def test_explicit_url_overrides_site() -> None:
    intake = IntakeSettings(url="http://localhost:8126/logs", site="ignored")
    assert intake.endpoint == "http://localhost:8126/logs"
