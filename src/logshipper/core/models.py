"""
Wire-format log items and batches.

``LogItem`` mirrors one element of the intake API's JSON array. ``Batch`` is
an ordered group of items bound for a single submission; its token exists
only to correlate diagnostics and is never used for deduplication.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import Any

# Optional item fields in wire order
_OPTIONAL_FIELDS: tuple[str, ...] = ("ddsource", "ddtags", "service", "hostname")


@dataclass(frozen=True)
class LogItem:
    message: str
    ddsource: str | None = None
    ddtags: str | None = None
    service: str | None = None
    hostname: str | None = None

    @property
    def serialized_size(self) -> int:
        """Size charged against intake limits: UTF-8 bytes of the string fields."""
        size = len(self.message.encode("utf-8"))
        for name in _OPTIONAL_FIELDS:
            value = getattr(self, name)
            if value:
                size += len(value.encode("utf-8"))
        return size

    def to_wire(self) -> dict[str, Any]:
        data: dict[str, Any] = {"message": self.message}
        for name in _OPTIONAL_FIELDS:
            value = getattr(self, name)
            if value:
                data[name] = value
        return data


def new_bucket_token() -> str:
    """Return ``<epoch-ms>_<0..999>``."""
    return f"{int(time.time() * 1000)}_{random.randint(0, 999)}"


@dataclass
class Batch:
    """An ordered group of log items.

    Mutable only while open inside an accumulator. Once drained it belongs to
    the delivery pipeline.
    """

    token: str = field(default_factory=new_bucket_token)
    items: list[LogItem] = field(default_factory=list)
    size: int = 0

    def __len__(self) -> int:
        return len(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @classmethod
    def single(cls, item: LogItem, size: int | None = None) -> Batch:
        return cls(
            items=[item],
            size=item.serialized_size if size is None else size,
        )
