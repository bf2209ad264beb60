"""
Root pytest configuration.
"""

from __future__ import annotations

from collections.abc import Generator

import pytest


@pytest.fixture(autouse=True)
def reset_diagnostics_state() -> Generator[None, None, None]:
    """Reset diagnostics caches and writer around each test.

    The diagnostics module caches the ``internal_logging_enabled`` setting at
    first access, and tests may swap its writer. Each test starts clean.
    """
    import logshipper.core.diagnostics as diag

    diag._reset_for_tests()
    yield
    diag._reset_for_tests()


@pytest.fixture
def capture_diagnostics(
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[list[dict], None, None]:
    """Enable diagnostics and collect every emitted payload."""
    import logshipper.core.diagnostics as diag

    monkeypatch.setenv("LOGSHIPPER_CORE__INTERNAL_LOGGING_ENABLED", "true")
    captured: list[dict] = []
    diag.set_writer_for_tests(captured.append)
    yield captured
