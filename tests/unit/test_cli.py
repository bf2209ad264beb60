from __future__ import annotations

import io
from typing import Any, Sequence

import pytest

from logshipper.cli import main as cli
from logshipper.core.models import LogItem
from logshipper.core.settings import Settings


class _StubSubmitter:
    def __init__(self) -> None:
        self.calls: list[list[LogItem]] = []

    async def submit(
        self, items: Sequence[LogItem], *, content_encoding: str = "gzip"
    ) -> Any:
        self.calls.append(list(items))
        return {}


def test_parse_line_variants() -> None:
    assert cli.parse_line("   \n") is None
    assert cli.parse_line('{"level": 30, "msg": "hi"}\n') == {"level": 30, "msg": "hi"}

    plain = cli.parse_line("plain text line\n")
    assert plain is not None
    assert plain["msg"] == "plain text line"
    assert isinstance(plain["time"], int)

    scalar = cli.parse_line("42")
    assert scalar is not None
    assert scalar["msg"] == 42


def test_apply_overrides_merges_flags_over_settings() -> None:
    args = cli._build_parser().parse_args(
        [
            "--service",
            "checkout",
            "--ddtags",
            "env:prod",
            "--retries",
            "1",
            "--send-immediate",
            "--url",
            "http://localhost:9000/logs",
        ]
    )
    settings = cli._apply_overrides(Settings(), args)

    assert settings.transport.service == "checkout"
    assert settings.transport.ddtags == "env:prod"
    assert settings.transport.retries == 1
    assert settings.transport.send_immediate is True
    assert settings.intake.endpoint == "http://localhost:9000/logs"


def test_invalid_override_returns_exit_code_2(
    capsys: pytest.CaptureFixture[str],
) -> None:
    import asyncio

    code = asyncio.run(cli.main(["--retries", "-3"]))

    assert code == 2
    assert "Error" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_main_ships_stdin_records(monkeypatch: pytest.MonkeyPatch) -> None:
    submitter = _StubSubmitter()
    real_transport = cli.LogTransport

    def _factory(settings: Settings, **kwargs: Any) -> Any:
        return real_transport(settings, submitter=submitter, **kwargs)

    monkeypatch.setattr(cli, "LogTransport", _factory)
    monkeypatch.setenv("LOGSHIPPER_SHUTDOWN__INSTALL_HANDLERS", "false")
    monkeypatch.setattr(
        cli.sys,
        "stdin",
        io.StringIO('{"level": 50, "msg": "a"}\n\nnot json\n{"msg": "c"}\n'),
    )

    code = await cli.main(["--service", "svc", "--send-interval-ms", "0"])

    assert code == 0
    assert len(submitter.calls) == 1
    items = submitter.calls[0]
    assert len(items) == 3
    assert all(item.service == "svc" for item in items)
    assert '"level":"error"' in items[0].message
    assert "not json" in items[1].message


@pytest.mark.asyncio
async def test_main_start_failure_returns_exit_code_1(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.delenv("LOGSHIPPER_INTAKE__API_KEY", raising=False)
    monkeypatch.delenv("LOGSHIPPER_INTAKE__URL", raising=False)
    monkeypatch.setenv("LOGSHIPPER_SHUTDOWN__INSTALL_HANDLERS", "false")

    code = await cli.main([])

    assert code == 1
    assert "Error" in capsys.readouterr().err
