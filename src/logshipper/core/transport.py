"""
Host-facing log transport.

``LogTransport`` wires the record transform, accumulator, flush scheduler,
delivery pipeline and shutdown drain into one object with an explicit
lifecycle:

    transport = LogTransport(settings, on_error=handle_error)
    await transport.start()
    await transport.process(records)   # async iterable of dicts
    await transport.stop()

or as an async context manager. ``process`` stops at the first ``None``
record without flushing; the final flush is owed to ``stop()`` or the
installed shutdown hooks.
"""

from __future__ import annotations

import types
from typing import Any, AsyncIterable, Mapping

from . import diagnostics
from .accumulator import BatchAccumulator
from .delivery import DeliveryPipeline, Submitter
from .hooks import (
    DebugCallback,
    ErrorCallback,
    InitCallback,
    call_on_error,
    call_on_init,
)
from .retry import RetryConfig
from .scheduler import FlushMode, FlushScheduler, FlushTrigger
from .settings import Settings
from .shutdown import ShutdownDrain
from .transform import transform
from ..metrics.metrics import MetricsCollector


class LogTransport:
    """Batching transport from structured records to a bulk intake endpoint."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        submitter: Submitter | None = None,
        on_error: ErrorCallback | None = None,
        on_debug: DebugCallback | None = None,
        on_init: InitCallback | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._settings = settings or Settings()
        cfg = self._settings.transport
        if submitter is None:
            from ..intake.client import HttpIntakeClient

            submitter = HttpIntakeClient(self._settings.intake)
        self._submitter = submitter
        self._on_error = on_error
        self._on_debug = on_debug
        self._on_init = on_init
        self._metrics = metrics or MetricsCollector(
            enabled=self._settings.core.enable_metrics
        )
        self._accumulator = BatchAccumulator()
        self._delivery = DeliveryPipeline(
            submitter,
            retry_config=RetryConfig.from_retries(
                cfg.retries,
                base_delay=cfg.retry_base_delay,
                max_delay=cfg.retry_max_delay,
            ),
            on_error=on_error,
            on_debug=on_debug,
            metrics=self._metrics,
            max_concurrency=cfg.max_concurrent_deliveries,
        )
        self._scheduler = FlushScheduler(
            self._accumulator,
            self._delivery,
            mode=FlushMode.IMMEDIATE if cfg.send_immediate else FlushMode.BATCHED,
            payload_size_limit=cfg.payload_size_limit,
            max_batch_items=cfg.max_batch_items,
            item_size_limit=cfg.item_size_limit,
            flush_interval_seconds=cfg.flush_interval_seconds,
            on_error=on_error,
            on_debug=on_debug,
        )
        self._shutdown = ShutdownDrain(
            self._scheduler,
            self._accumulator,
            self._delivery,
            on_debug=on_debug,
            drain_timeout_seconds=self._settings.shutdown.drain_timeout_seconds,
            signal_handler_enabled=self._settings.shutdown.signal_handler_enabled,
        )
        self._started = False
        self._stopped = False

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def accumulator(self) -> BatchAccumulator:
        return self._accumulator

    @property
    def scheduler(self) -> FlushScheduler:
        return self._scheduler

    @property
    def delivery(self) -> DeliveryPipeline:
        return self._delivery

    @property
    def shutdown(self) -> ShutdownDrain:
        return self._shutdown

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the submitter and timer, install hooks, then fire on_init."""
        if self._started:
            return
        self._started = True
        start = getattr(self._submitter, "start", None)
        if start is not None:
            await start()
        self._scheduler.start()
        if self._settings.shutdown.install_handlers:
            self._shutdown.install()
        call_on_init(self._on_init)

    async def stop(self) -> None:
        """Run the shutdown drain, wait for deliveries, close the submitter."""
        if self._stopped:
            return
        self._stopped = True
        await self._shutdown.run(wait=True)
        self._shutdown.uninstall()
        close = getattr(self._submitter, "aclose", None)
        if close is not None:
            try:
                await close()
            except Exception as exc:
                diagnostics.warn(
                    "transport",
                    "submitter close failed",
                    error_type=type(exc).__name__,
                    error=str(exc),
                )

    async def __aenter__(self) -> LogTransport:
        await self.start()
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc: BaseException | None,
        _tb: types.TracebackType | None,
    ) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def write(self, record: Mapping[str, Any] | None) -> None:
        """Transform and schedule a single record. Never raises."""
        cfg = self._settings.transport
        try:
            item = transform(
                record,
                ddsource=cfg.ddsource,
                ddtags=cfg.ddtags,
                service=cfg.service,
            )
        except Exception as exc:
            diagnostics.warn(
                "transport",
                "record transform failed",
                error_type=type(exc).__name__,
                error=str(exc),
                _rate_limit_key="transform",
            )
            call_on_error(self._on_error, exc, None)
            await self._metrics.record_received(skipped=True)
            return
        if item is None:
            await self._metrics.record_received(skipped=True)
            return
        await self._metrics.record_received()
        try:
            result = self._scheduler.schedule(item)
        except Exception as exc:
            diagnostics.warn(
                "transport",
                "scheduling failed",
                error_type=type(exc).__name__,
                error=str(exc),
            )
            call_on_error(self._on_error, exc, [item.to_wire()])
            return
        if result.oversize:
            await self._metrics.record_oversize()

    async def process(self, source: AsyncIterable[Mapping[str, Any] | None]) -> None:
        """Consume ``source`` until it ends or yields ``None``."""
        async for record in source:
            if record is None:
                return
            await self.write(record)

    def flush(self) -> None:
        """Force a flush of the open batch (no-op when empty)."""
        self._scheduler.flush(FlushTrigger.MANUAL)

    async def wait_idle(self, timeout: float | None = None) -> bool:
        return await self._delivery.wait_idle(timeout)


async def build_transport(
    settings: Settings | None = None,
    *,
    submitter: Submitter | None = None,
    on_error: ErrorCallback | None = None,
    on_debug: DebugCallback | None = None,
    on_init: InitCallback | None = None,
) -> LogTransport:
    """Create and start a ``LogTransport``."""
    transport = LogTransport(
        settings,
        submitter=submitter,
        on_error=on_error,
        on_debug=on_debug,
        on_init=on_init,
    )
    await transport.start()
    return transport
