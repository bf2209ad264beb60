"""
Record to wire-item conversion.

Pure functions: map a structured source record (pino-style numeric or string
``level``) to a ``LogItem`` whose message is the full record serialized as
JSON with the level replaced by its name.
"""

from __future__ import annotations

from numbers import Real
from typing import Any, Mapping

import orjson

from .models import LogItem

# Numeric thresholds, highest first
_LEVEL_THRESHOLDS: tuple[tuple[int, str], ...] = (
    (60, "fatal"),
    (50, "error"),
    (40, "warning"),
    (30, "log"),
    (20, "info"),
)
DEFAULT_LEVEL = "debug"


def convert_level(level: Any) -> str:
    """Map a numeric or string level to the intake level vocabulary.

    Strings pass through unchanged. Anything that is neither a string nor a
    real number maps to ``"debug"``.
    """
    if isinstance(level, str):
        return level
    if isinstance(level, bool) or not isinstance(level, Real):
        return DEFAULT_LEVEL
    for threshold, name in _LEVEL_THRESHOLDS:
        if level >= threshold:
            return name
    return DEFAULT_LEVEL


# orjson only encodes integers in the int64/uint64 range
_INT_MIN = -(2**63)
_INT_MAX = 2**64 - 1


def _coerce_wide_key(key: Any) -> Any:
    if isinstance(key, int) and not _INT_MIN <= key <= _INT_MAX:
        return str(key)
    return key


def _coerce_wide_ints(value: Any) -> Any:
    if isinstance(value, int):
        return value if _INT_MIN <= value <= _INT_MAX else str(value)
    if isinstance(value, Mapping):
        return {
            _coerce_wide_key(k): _coerce_wide_ints(v) for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_coerce_wide_ints(v) for v in value]
    return value


def _dumps(payload: Mapping[str, Any]) -> str:
    try:
        raw = orjson.dumps(payload, default=str, option=orjson.OPT_NON_STR_KEYS)
    except orjson.JSONEncodeError:
        # Integers wider than 64 bits are written as decimal strings
        raw = orjson.dumps(
            _coerce_wide_ints(payload),
            default=str,
            option=orjson.OPT_NON_STR_KEYS,
        )
    return raw.decode("utf-8")


def transform(
    record: Mapping[str, Any] | None,
    *,
    ddsource: str | None = None,
    ddtags: str | None = None,
    service: str | None = None,
) -> LogItem | None:
    """Convert one record to a ``LogItem``; ``None`` means skip.

    Raises:
        TypeError: ``record`` is not a mapping.
    """
    if not record:
        return None
    if not isinstance(record, Mapping):
        raise TypeError(
            f"log record must be a mapping, got {type(record).__name__}"
        )
    body = dict(record)
    body["level"] = convert_level(record.get("level"))
    hostname = record.get("hostname")
    return LogItem(
        message=_dumps(body),
        ddsource=ddsource or None,
        ddtags=ddtags or None,
        service=service or None,
        hostname=str(hostname) if hostname else None,
    )
