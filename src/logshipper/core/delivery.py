"""
Batch delivery with bounded retry.

``DeliveryPipeline.submit`` is fire-and-forget: each batch becomes an asyncio
task tracked in a task set, so the ingestion path never waits on the network.
Deliveries may complete out of submission order. An optional concurrency cap
queues extra deliveries on a semaphore; nothing is ever dropped.

A batch that still fails after its retry budget is reported once through
``on_error`` together with every undelivered item. The pipeline never
requeues.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Protocol, Sequence, runtime_checkable

from . import diagnostics
from .errors import DeliveryError, RetryExhaustedError
from .hooks import DebugCallback, ErrorCallback, call_on_debug, call_on_error
from .models import Batch, LogItem
from .retry import AsyncRetrier, RetryConfig
from ..metrics.metrics import MetricsCollector


@runtime_checkable
class Submitter(Protocol):
    """Remote bulk-ingestion capability."""

    async def submit(
        self,
        items: Sequence[LogItem],
        *,
        content_encoding: str = "gzip",
    ) -> Any:  # pragma: no cover - structural protocol
        ...


class DeliveryPipeline:
    """Submit drained batches concurrently with retry."""

    def __init__(
        self,
        submitter: Submitter,
        *,
        retry_config: RetryConfig | None = None,
        on_error: ErrorCallback | None = None,
        on_debug: DebugCallback | None = None,
        metrics: MetricsCollector | None = None,
        max_concurrency: int | None = None,
        content_encoding: str = "gzip",
    ) -> None:
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1 when set")
        self._submitter = submitter
        self._retry_config = retry_config or RetryConfig.from_retries(5)
        self._on_error = on_error
        self._on_debug = on_debug
        self._metrics = metrics
        self._content_encoding = content_encoding
        self._max_concurrency = max_concurrency
        self._semaphore: asyncio.Semaphore | None = (
            asyncio.Semaphore(max_concurrency) if max_concurrency else None
        )
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        """Number of deliveries not yet finished."""
        return len(self._tasks)

    def submit(self, batch: Batch, *, trigger: str = "manual") -> asyncio.Task[None] | None:
        """Schedule delivery of ``batch`` and return immediately.

        Must be called from a running event loop. Empty batches are ignored.
        """
        if batch.is_empty:
            return None
        task = asyncio.get_running_loop().create_task(
            self._deliver(batch, trigger), name=f"logshipper-deliver-{batch.token}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self, timeout: float | None = None) -> bool:
        """Wait for in-flight deliveries. Returns False on timeout."""
        loop = asyncio.get_running_loop()
        tasks = {t for t in self._tasks if t.get_loop() is loop}
        if not tasks:
            return True
        _, still_pending = await asyncio.wait(tasks, timeout=timeout)
        return not still_pending

    async def _deliver(self, batch: Batch, trigger: str) -> None:
        if self._semaphore is None:
            await self._deliver_with_retry(batch, trigger)
            return
        try:
            await self._semaphore.acquire()
        except asyncio.CancelledError:
            # Cancelled while queued behind the concurrency cap
            self._report_failure(batch, 0, None)
            raise
        try:
            await self._deliver_with_retry(batch, trigger)
        finally:
            self._semaphore.release()

    async def _deliver_with_retry(self, batch: Batch, trigger: str) -> None:
        items = list(batch.items)
        count = len(items)
        await self._record("record_flush", trigger)
        retrier = AsyncRetrier(self._retry_config, on_retry=self._log_retry(batch))

        async def _attempt() -> Any:
            call_on_debug(self._on_debug, f"Sending {count} logs to intake")
            return await self._submitter.submit(
                items, content_encoding=self._content_encoding
            )

        start = time.perf_counter()
        try:
            await retrier.retry(_attempt)
        except asyncio.CancelledError:
            # Delivery interrupted by loop teardown; hand the items back
            self._report_failure(batch, retrier.stats.attempt_count, None)
            raise
        except RetryExhaustedError as exc:
            await self._record_retries(retrier.stats.attempt_count)
            self._report_failure(batch, retrier.stats.attempt_count, exc.cause)
            await self._record("record_failed", count)
            return
        except Exception as exc:
            # Non-retryable failure
            await self._record_retries(retrier.stats.attempt_count)
            self._report_failure(batch, retrier.stats.attempt_count, exc)
            await self._record("record_failed", count)
            return

        await self._record_retries(retrier.stats.attempt_count)
        if self._metrics is not None:
            try:
                await self._metrics.record_delivered(
                    count, duration_seconds=time.perf_counter() - start
                )
            except Exception:
                pass
        call_on_debug(self._on_debug, f"Sending {count} logs to intake completed")

    def _report_failure(
        self, batch: Batch, attempts: int, cause: BaseException | None
    ) -> None:
        error = DeliveryError(
            batch_token=batch.token,
            item_count=len(batch.items),
            attempts=attempts,
            cause=cause,
        )
        diagnostics.warn(
            "delivery",
            "batch delivery failed",
            batch=batch.token,
            items=len(batch.items),
            attempts=attempts,
            error=str(cause) if cause is not None else "cancelled",
        )
        call_on_error(self._on_error, error, [item.to_wire() for item in batch.items])

    def _log_retry(self, batch: Batch) -> Any:
        def _on_retry(attempt: int, exc: BaseException, delay: float) -> None:
            diagnostics.debug(
                "delivery",
                "retrying batch",
                batch=batch.token,
                attempt=attempt,
                delay=round(delay, 3),
                error=str(exc),
                _rate_limit_key="delivery-retry",
            )

        return _on_retry

    async def _record_retries(self, attempts: int) -> None:
        for _ in range(max(0, attempts - 1)):
            await self._record("record_retry")

    async def _record(self, name: str, *args: Any) -> None:
        if self._metrics is None:
            return
        try:
            await getattr(self._metrics, name)(*args)
        except Exception:
            pass
