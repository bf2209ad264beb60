"""
Async-first shipping metrics.

Implements minimal Prometheus-compatible counters for the batching and
delivery paths.

Design goals:
- Pure async/await, no blocking I/O
- Zero global state; instances are owned by a transport
- Safe no-op exporter behavior when metrics are disabled by settings, while
  in-memory counters are always kept for tests and snapshots
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Histogram


@dataclass
class ShipperMetrics:
    """Captured runtime metrics for quick assertions in tests."""

    records_received: int = 0
    records_skipped: int = 0
    oversize_items: int = 0
    batches_flushed: dict[str, int] = field(default_factory=dict)
    batches_submitted: int = 0
    batches_failed: int = 0
    items_delivered: int = 0
    items_failed: int = 0
    delivery_retries: int = 0


class MetricsCollector:
    """Transport-scoped async metrics collector."""

    def __init__(self, *, enabled: bool = False) -> None:
        self._enabled = bool(enabled)
        self._lock = asyncio.Lock()
        self._state = ShipperMetrics()

        self._c_records: Any | None = None
        self._c_flushes: Any | None = None
        self._c_items_delivered: Any | None = None
        self._c_items_failed: Any | None = None
        self._c_retries: Any | None = None
        self._c_oversize: Any | None = None
        self._h_submit_latency: Any | None = None
        self._registry: CollectorRegistry | None = None

        if self._enabled:
            # Isolated registry avoids duplicate registration across instances
            self._registry = CollectorRegistry()
            self._c_records = Counter(
                "logshipper_records_received_total",
                "Total number of records received by the ingestion loop",
                registry=self._registry,
            )
            self._c_flushes = Counter(
                "logshipper_batches_flushed_total",
                "Total number of batches flushed, by trigger",
                ["trigger"],
                registry=self._registry,
            )
            self._c_items_delivered = Counter(
                "logshipper_items_delivered_total",
                "Total number of log items accepted by the intake endpoint",
                registry=self._registry,
            )
            self._c_items_failed = Counter(
                "logshipper_items_failed_total",
                "Total number of log items reported as undeliverable",
                registry=self._registry,
            )
            self._c_retries = Counter(
                "logshipper_delivery_retries_total",
                "Total number of delivery retry attempts",
                registry=self._registry,
            )
            self._c_oversize = Counter(
                "logshipper_oversize_items_total",
                "Total number of items exceeding the per-item size ceiling",
                registry=self._registry,
            )
            self._h_submit_latency = Histogram(
                "logshipper_submit_seconds",
                "Latency of a successful batch submission including retries",
                buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
                registry=self._registry,
            )

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def registry(self) -> CollectorRegistry | None:
        """Expose the isolated Prometheus registry when enabled."""
        return self._registry

    async def record_received(self, *, skipped: bool = False) -> None:
        async with self._lock:
            self._state.records_received += 1
            if skipped:
                self._state.records_skipped += 1
        if self._c_records is not None:
            self._c_records.inc()

    async def record_oversize(self) -> None:
        async with self._lock:
            self._state.oversize_items += 1
        if self._c_oversize is not None:
            self._c_oversize.inc()

    async def record_flush(self, trigger: str) -> None:
        async with self._lock:
            flushed = self._state.batches_flushed
            flushed[trigger] = flushed.get(trigger, 0) + 1
        if self._c_flushes is not None:
            self._c_flushes.labels(trigger=trigger).inc()

    async def record_retry(self) -> None:
        async with self._lock:
            self._state.delivery_retries += 1
        if self._c_retries is not None:
            self._c_retries.inc()

    async def record_delivered(
        self, item_count: int, *, duration_seconds: float | None = None
    ) -> None:
        async with self._lock:
            self._state.batches_submitted += 1
            self._state.items_delivered += item_count
        if self._c_items_delivered is not None:
            self._c_items_delivered.inc(item_count)
        if duration_seconds is not None and self._h_submit_latency is not None:
            self._h_submit_latency.observe(duration_seconds)

    async def record_failed(self, item_count: int) -> None:
        async with self._lock:
            self._state.batches_failed += 1
            self._state.items_failed += item_count
        if self._c_items_failed is not None:
            self._c_items_failed.inc(item_count)

    async def snapshot(self) -> ShipperMetrics:
        async with self._lock:
            s = self._state
            return ShipperMetrics(
                records_received=s.records_received,
                records_skipped=s.records_skipped,
                oversize_items=s.oversize_items,
                batches_flushed=dict(s.batches_flushed),
                batches_submitted=s.batches_submitted,
                batches_failed=s.batches_failed,
                items_delivered=s.items_delivered,
                items_failed=s.items_failed,
                delivery_retries=s.delivery_retries,
            )
