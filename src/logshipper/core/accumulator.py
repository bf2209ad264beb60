"""
Open-batch accumulator.

Holds exactly one open ``Batch``. ``drain`` swaps it for a fresh one under a
lock, so a drain from the timer task or a shutdown hook running on another
thread can never interleave with ``add``.
"""

from __future__ import annotations

import threading

from .models import Batch, LogItem


class BatchAccumulator:
    """Single-slot batch holder with atomic drain-and-replace."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._open = Batch()

    @property
    def token(self) -> str:
        with self._lock:
            return self._open.token

    def add(self, item: LogItem, item_size: int) -> None:
        """Append ``item`` to the open batch. Never enforces limits."""
        with self._lock:
            self._open.items.append(item)
            self._open.size += item_size

    def current_size(self) -> int:
        with self._lock:
            return self._open.size

    def current_count(self) -> int:
        with self._lock:
            return len(self._open.items)

    def drain(self) -> Batch:
        """Detach the open batch and start a new empty one."""
        fresh = Batch()
        with self._lock:
            drained, self._open = self._open, fresh
        return drained
