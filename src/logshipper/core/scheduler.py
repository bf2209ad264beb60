"""
Flush-trigger evaluation and timer lifecycle.

In batched mode every scheduled item is added to the accumulator and the
open batch is flushed when, in order of precedence:

1. its cumulative size exceeds ``payload_size_limit``;
2. its item count exceeds ``max_batch_items``;
3. the periodic timer fires while it is non-empty.

Limits are "exceeds", not "reaches". In immediate mode each item is
submitted as its own one-item batch and no timer runs.

Scheduling, trigger evaluation and draining are synchronous; only delivery
suspends, and it runs in tasks owned by ``DeliveryPipeline``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum

from . import diagnostics
from .accumulator import BatchAccumulator
from .delivery import DeliveryPipeline
from .errors import OversizeItemError
from .hooks import DebugCallback, ErrorCallback, call_on_debug, call_on_error
from .models import Batch, LogItem

# Intake limits are 5 MB per request, 1 MB per log and 1000 logs per
# request; defaults stay under each.
DEFAULT_PAYLOAD_SIZE_LIMIT = 5_138_022
DEFAULT_ITEM_SIZE_LIMIT = 996_147
DEFAULT_MAX_BATCH_ITEMS = 995
DEFAULT_FLUSH_INTERVAL_SECONDS = 3.0


class FlushMode(str, Enum):
    BATCHED = "batched"
    IMMEDIATE = "immediate"


class FlushTrigger(str, Enum):
    SIZE = "size"
    COUNT = "count"
    TIMER = "timer"
    IMMEDIATE = "immediate"
    SHUTDOWN = "shutdown"
    MANUAL = "manual"


@dataclass(frozen=True)
class ScheduleResult:
    oversize: bool = False
    flushed: FlushTrigger | None = None


class FlushScheduler:
    """Decide when the open batch is flushed and hand it to delivery."""

    def __init__(
        self,
        accumulator: BatchAccumulator,
        delivery: DeliveryPipeline,
        *,
        mode: FlushMode = FlushMode.BATCHED,
        payload_size_limit: int = DEFAULT_PAYLOAD_SIZE_LIMIT,
        max_batch_items: int = DEFAULT_MAX_BATCH_ITEMS,
        item_size_limit: int = DEFAULT_ITEM_SIZE_LIMIT,
        flush_interval_seconds: float | None = DEFAULT_FLUSH_INTERVAL_SECONDS,
        on_error: ErrorCallback | None = None,
        on_debug: DebugCallback | None = None,
    ) -> None:
        self._accumulator = accumulator
        self._delivery = delivery
        self._mode = FlushMode(mode)
        self._payload_size_limit = payload_size_limit
        self._max_batch_items = max_batch_items
        self._item_size_limit = item_size_limit
        self._flush_interval = flush_interval_seconds
        self._on_error = on_error
        self._on_debug = on_debug
        self._timer_task: asyncio.Task[None] | None = None
        self._stopped = False

    @property
    def mode(self) -> FlushMode:
        return self._mode

    @property
    def timer_running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    @property
    def stopped(self) -> bool:
        return self._stopped

    def start(self) -> None:
        """Start the periodic timer (batched mode with a positive interval)."""
        if self._stopped or self._timer_task is not None:
            return
        if self._mode is FlushMode.IMMEDIATE:
            return
        if not self._flush_interval or self._flush_interval <= 0:
            return
        self._timer_task = asyncio.get_running_loop().create_task(
            self._timer_loop(self._flush_interval), name="logshipper-flush-timer"
        )

    def stop(self) -> None:
        """Cancel the periodic timer. Idempotent."""
        if self._stopped:
            return
        self._stopped = True
        task, self._timer_task = self._timer_task, None
        if task is not None and not task.done():
            task.cancel()

    def schedule(self, item: LogItem, item_size: int | None = None) -> ScheduleResult:
        """Accept one item and flush if a size or count trigger fires."""
        size = item.serialized_size if item_size is None else item_size
        oversize = size > self._item_size_limit
        if oversize:
            # Reported now, forwarded anyway
            call_on_error(
                self._on_error,
                OversizeItemError(size, self._item_size_limit),
                [item.to_wire()],
            )

        if self._mode is FlushMode.IMMEDIATE:
            self._delivery.submit(
                Batch.single(item, size), trigger=FlushTrigger.IMMEDIATE.value
            )
            return ScheduleResult(oversize=oversize, flushed=FlushTrigger.IMMEDIATE)

        self._accumulator.add(item, size)
        trigger = self._evaluate()
        if trigger is not None:
            self.flush(trigger)
        return ScheduleResult(oversize=oversize, flushed=trigger)

    def _evaluate(self) -> FlushTrigger | None:
        if self._accumulator.current_size() > self._payload_size_limit:
            return FlushTrigger.SIZE
        if self._accumulator.current_count() > self._max_batch_items:
            return FlushTrigger.COUNT
        return None

    def flush(self, trigger: FlushTrigger = FlushTrigger.MANUAL) -> Batch | None:
        """Drain the open batch and submit it unless it is empty."""
        if self._accumulator.current_count() == 0:
            return None
        batch = self._accumulator.drain()
        if batch.is_empty:
            # Lost the race to another drain
            return None
        diagnostics.debug(
            "scheduler",
            "flushing batch",
            batch=batch.token,
            items=len(batch),
            size=batch.size,
            trigger=trigger.value,
        )
        self._delivery.submit(batch, trigger=trigger.value)
        return batch

    async def _timer_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                self.flush(FlushTrigger.TIMER)
            except Exception as exc:
                diagnostics.warn(
                    "scheduler",
                    "timer flush failed",
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                call_on_debug(self._on_debug, f"Timer flush failed: {exc}")
