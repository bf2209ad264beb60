"""
Internal diagnostics for non-fatal shipper errors.

Diagnostics are structured JSON lines written to stderr. They are disabled by
default and enabled via ``LOGSHIPPER_CORE__INTERNAL_LOGGING_ENABLED=true``.
The enabled flag is resolved lazily from settings on first use and cached;
tests reset the cache through ``_reset_for_tests``.

Nothing in this module may raise into the caller.
"""

from __future__ import annotations

import sys
import threading
import time
from typing import Any, Callable

import orjson

_Writer = Callable[[dict[str, Any]], None]

# Minimum seconds between two diagnostics sharing a rate-limit key
_RATE_LIMIT_WINDOW_SECONDS = 5.0

_internal_logging_enabled: bool | None = None
_last_emit: dict[str, float] = {}
_lock = threading.Lock()


def _default_writer(payload: dict[str, Any]) -> None:
    line = orjson.dumps(payload, default=str)
    buf = sys.stderr.buffer if hasattr(sys.stderr, "buffer") else None
    if buf is not None:
        buf.write(line + b"\n")
        buf.flush()
    else:  # pragma: no cover - text-only stderr replacements
        sys.stderr.write(line.decode("utf-8") + "\n")
        sys.stderr.flush()


_writer: _Writer = _default_writer


def _is_enabled() -> bool:
    global _internal_logging_enabled
    if _internal_logging_enabled is None:
        try:
            from .settings import Settings

            _internal_logging_enabled = bool(
                Settings().core.internal_logging_enabled
            )
        except Exception:
            _internal_logging_enabled = False
    return _internal_logging_enabled


def _rate_limited(key: str | None) -> bool:
    if key is None:
        return False
    now = time.monotonic()
    with _lock:
        last = _last_emit.get(key)
        if last is not None and now - last < _RATE_LIMIT_WINDOW_SECONDS:
            return True
        _last_emit[key] = now
    return False


def _emit(
    level: str,
    component: str,
    message: str,
    rate_limit_key: str | None,
    fields: dict[str, Any],
) -> None:
    try:
        if not _is_enabled():
            return
        if _rate_limited(rate_limit_key):
            return
        payload: dict[str, Any] = {
            "timestamp": time.time(),
            "level": level,
            "logger": "logshipper.diagnostics",
            "component": component,
            "message": message,
        }
        payload.update(fields)
        _writer(payload)
    except Exception:
        # Diagnostics must never affect the shipping path
        pass


def warn(
    component: str,
    message: str,
    *,
    _rate_limit_key: str | None = None,
    **fields: Any,
) -> None:
    """Emit a WARN diagnostic for ``component``."""
    _emit("WARN", component, message, _rate_limit_key, fields)


def debug(
    component: str,
    message: str,
    *,
    _rate_limit_key: str | None = None,
    **fields: Any,
) -> None:
    """Emit a DEBUG diagnostic for ``component``."""
    _emit("DEBUG", component, message, _rate_limit_key, fields)


def set_writer_for_tests(writer: _Writer) -> None:
    """Replace the diagnostics writer (testing only)."""
    global _writer
    _writer = writer


def _reset_for_tests() -> None:
    global _internal_logging_enabled, _writer
    _internal_logging_enabled = None
    _writer = _default_writer
    with _lock:
        _last_emit.clear()
