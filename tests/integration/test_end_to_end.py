from __future__ import annotations

import gzip
import json
from typing import Any

import httpx
import pytest
from pydantic import SecretStr

from logshipper.core.settings import (
    IntakeSettings,
    Settings,
    ShutdownSettings,
    TransportSettings,
)
from logshipper.core.transport import LogTransport
from logshipper.intake.client import HttpIntakeClient

pytestmark = pytest.mark.integration


class _FlakyIntake:
    """Answers with the queued statuses, then 202."""

    def __init__(self, statuses: list[int]) -> None:
        self.statuses = list(statuses)
        self.bodies: list[list[dict[str, Any]]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.bodies.append(json.loads(gzip.decompress(request.content)))
        status = self.statuses.pop(0) if self.statuses else 202
        return httpx.Response(status, json={})


def _transport(
    intake: _FlakyIntake, on_error: Any = None, **kwargs: Any
) -> LogTransport:
    settings = Settings(
        transport=TransportSettings(
            service="web",
            ddsource="python",
            send_interval_ms=0,
            retry_base_delay=0.0,
            retry_max_delay=0.0,
            **kwargs,
        ),
        intake=IntakeSettings(api_key=SecretStr("key")),
        shutdown=ShutdownSettings(install_handlers=False),
        core={"enable_metrics": True},
    )
    client = HttpIntakeClient(
        settings.intake,
        client=httpx.AsyncClient(transport=httpx.MockTransport(intake)),
    )
    return LogTransport(settings, submitter=client, on_error=on_error)


@pytest.mark.asyncio
async def test_records_survive_transient_intake_failure() -> None:
    intake = _FlakyIntake([503])
    errors: list[BaseException] = []
    transport = _transport(intake, on_error=lambda err, items: errors.append(err))

    async with transport:
        for n in range(3):
            await transport.write({"level": 30, "msg": f"m{n}", "hostname": "h"})

    assert errors == []
    assert len(intake.bodies) == 2
    assert intake.bodies[0] == intake.bodies[1]
    shipped = intake.bodies[1]
    assert [json.loads(i["message"])["msg"] for i in shipped] == ["m0", "m1", "m2"]
    assert all(i["service"] == "web" and i["ddsource"] == "python" for i in shipped)
    assert all(i["hostname"] == "h" for i in shipped)

    snap = await transport.metrics.snapshot()
    assert snap.items_delivered == 3
    assert snap.delivery_retries == 1
    assert snap.batches_flushed == {"shutdown": 1}
    registry = transport.metrics.registry
    assert registry is not None
    assert registry.get_sample_value("logshipper_items_delivered_total") == 3.0


@pytest.mark.asyncio
async def test_exhausted_retries_report_batch_to_on_error() -> None:
    intake = _FlakyIntake([500, 500])
    reports: list[tuple[BaseException, Any]] = []
    transport = _transport(
        intake, on_error=lambda err, items: reports.append((err, items)), retries=1
    )

    async with transport:
        await transport.write({"msg": "doomed"})

    assert len(intake.bodies) == 2
    assert len(reports) == 1
    err, items = reports[0]
    assert "Failed to deliver 1 logs after 2 attempts" in str(err)
    assert items is not None and json.loads(items[0]["message"])["msg"] == "doomed"
    snap = await transport.metrics.snapshot()
    assert snap.items_failed == 1
