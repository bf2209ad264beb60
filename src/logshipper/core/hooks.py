"""
Host callback types and contained invocation helpers.

Host callbacks are user code; an exception raised by one must never reach
the ingestion loop, the timer or a delivery task.
"""

from __future__ import annotations

from typing import Any, Callable, Sequence

from . import diagnostics

ErrorCallback = Callable[[BaseException, Sequence[dict[str, Any]] | None], None]
DebugCallback = Callable[[str], None]
InitCallback = Callable[[], None]


def call_on_error(
    callback: ErrorCallback | None,
    error: BaseException,
    items: Sequence[dict[str, Any]] | None = None,
) -> None:
    if callback is None:
        diagnostics.warn(
            "transport",
            "error dropped (no on_error callback)",
            error_type=type(error).__name__,
            error=str(error),
            items=len(items) if items is not None else 0,
            _rate_limit_key="no-on-error",
        )
        return
    try:
        callback(error, items)
    except Exception as exc:
        diagnostics.warn(
            "transport",
            "on_error callback raised",
            error_type=type(exc).__name__,
            error=str(exc),
        )


def call_on_debug(callback: DebugCallback | None, message: str) -> None:
    if callback is None:
        return
    try:
        callback(message)
    except Exception as exc:
        diagnostics.warn(
            "transport",
            "on_debug callback raised",
            error_type=type(exc).__name__,
            error=str(exc),
            _rate_limit_key="on-debug",
        )


def call_on_init(callback: InitCallback | None) -> None:
    if callback is None:
        return
    try:
        callback()
    except Exception as exc:
        diagnostics.warn(
            "transport",
            "on_init callback raised",
            error_type=type(exc).__name__,
            error=str(exc),
        )
