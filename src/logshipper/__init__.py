"""
Public entrypoints for logshipper.

Batches structured log records and ships them to a bulk log intake endpoint
with bounded retry and a best-effort drain on shutdown.
"""

from __future__ import annotations

from ._version import __version__
from .core.errors import DeliveryError, OversizeItemError, ShipperError
from .core.settings import Settings
from .core.transform import convert_level
from .core.transport import LogTransport, build_transport

__all__ = [
    "DeliveryError",
    "LogTransport",
    "OversizeItemError",
    "Settings",
    "ShipperError",
    "VERSION",
    "__version__",
    "build_transport",
    "convert_level",
]

VERSION = __version__
