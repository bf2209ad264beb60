"""Graceful shutdown drain for a transport.

``ShutdownDrain`` is an explicit lifecycle object: the host (normally
``LogTransport``) creates one per transport and decides whether to
``install()`` process hooks. Nothing is registered at import time, so tests
can build independent instances.

On invocation it stops the flush timer and, when the open batch holds items,
drains it once and hands it to the delivery pipeline. It runs at most once.

Waiting for the resulting delivery is best-effort and bounded by
``drain_timeout_seconds``; a process that exits before the network call
finishes loses that batch.
"""

from __future__ import annotations

import asyncio
import atexit
import signal
import threading
from typing import Any

from . import diagnostics
from .accumulator import BatchAccumulator
from .delivery import DeliveryPipeline
from .hooks import DebugCallback, call_on_debug
from .scheduler import FlushScheduler, FlushTrigger


class ShutdownDrain:
    """Stop the timer and flush what is left, exactly once."""

    def __init__(
        self,
        scheduler: FlushScheduler,
        accumulator: BatchAccumulator,
        delivery: DeliveryPipeline,
        *,
        on_debug: DebugCallback | None = None,
        drain_timeout_seconds: float = 2.0,
        signal_handler_enabled: bool = True,
    ) -> None:
        self._scheduler = scheduler
        self._accumulator = accumulator
        self._delivery = delivery
        self._on_debug = on_debug
        self._drain_timeout = drain_timeout_seconds
        self._signal_handler_enabled = signal_handler_enabled
        self._lock = threading.Lock()
        self._ran = False
        self._installed = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_signals: list[int] = []
        self._original_handlers: dict[int, Any] = {}
        self._signal_task: asyncio.Task[None] | None = None

    @property
    def has_run(self) -> bool:
        return self._ran

    def _claim(self) -> bool:
        with self._lock:
            if self._ran:
                return False
            self._ran = True
            return True

    def trigger(self) -> bool:
        """Run the drain synchronously inside a running loop.

        Returns True when a non-empty batch was handed to delivery.
        """
        if not self._claim():
            return False
        self._scheduler.stop()
        if self._accumulator.current_count() == 0:
            return False
        call_on_debug(
            self._on_debug,
            "Shutdown detected. Attempting to send remaining logs to intake",
        )
        batch = self._accumulator.drain()
        if batch.is_empty:
            return False
        diagnostics.debug(
            "shutdown", "final flush", batch=batch.token, items=len(batch)
        )
        self._delivery.submit(batch, trigger=FlushTrigger.SHUTDOWN.value)
        return True

    async def run(self, *, wait: bool = True) -> bool:
        """Drain once; optionally wait for in-flight deliveries.

        Returns True when a final batch was submitted.
        """
        submitted = self.trigger()
        if wait:
            finished = await self._delivery.wait_idle(self._drain_timeout)
            if not finished:
                diagnostics.warn(
                    "shutdown",
                    "deliveries still pending after drain timeout",
                    pending=self._delivery.pending,
                    timeout_seconds=self._drain_timeout,
                )
        return submitted

    # ------------------------------------------------------------------
    # Process hooks
    # ------------------------------------------------------------------

    def install(self) -> None:
        """Register the atexit hook and, if enabled, SIGTERM/SIGINT handlers."""
        if self._installed:
            return
        self._installed = True
        atexit.register(self._atexit_hook)
        if self._signal_handler_enabled:
            self._install_signal_handlers()

    def uninstall(self) -> None:
        if not self._installed:
            return
        self._installed = False
        try:
            atexit.unregister(self._atexit_hook)
        except Exception:
            pass
        if self._loop is not None:
            for signum in self._loop_signals:
                try:
                    self._loop.remove_signal_handler(signum)
                except Exception:
                    pass
        self._loop = None
        self._loop_signals = []
        for signum, handler in self._original_handlers.items():
            try:
                signal.signal(signum, handler)
            except Exception:
                pass
        self._original_handlers = {}

    def _install_signal_handlers(self) -> None:
        signums = [signal.SIGINT]
        # SIGTERM is not available on Windows
        if hasattr(signal, "SIGTERM"):
            signums.append(signal.SIGTERM)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        for signum in signums:
            if loop is not None:
                try:
                    loop.add_signal_handler(signum, self._on_loop_signal, signum)
                    self._loop = loop
                    self._loop_signals.append(signum)
                    continue
                except (NotImplementedError, RuntimeError, ValueError):
                    pass
            try:
                self._original_handlers[signum] = signal.signal(
                    signum, self._on_process_signal
                )
            except (ValueError, OSError):  # pragma: no cover - non-main thread
                pass

    def _on_loop_signal(self, signum: int) -> None:
        if self._signal_task is not None:
            return
        loop = asyncio.get_running_loop()
        self._signal_task = loop.create_task(self._handle_signal(signum))

    async def _handle_signal(self, signum: int) -> None:
        try:
            await self.run(wait=True)
        finally:
            self.uninstall()
            _reraise(signum)

    def _on_process_signal(self, signum: int, _frame: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            # Let the loop deliver the final batch before re-raising
            loop.call_soon_threadsafe(self._on_loop_signal, signum)
            return
        self._atexit_hook()
        self.uninstall()
        _reraise(signum)

    def _atexit_hook(self) -> None:
        """Best-effort drain when no event loop is driving shutdown."""
        if self._ran:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            # Inside a loop: submit and let the loop finish the delivery
            self.trigger()
            return
        try:
            asyncio.run(self.run(wait=True))
        except Exception as exc:
            diagnostics.warn(
                "shutdown",
                "exit drain failed",
                error_type=type(exc).__name__,
                error=str(exc),
            )


def _reraise(signum: int) -> None:
    try:
        signal.signal(signum, signal.SIG_DFL)
        signal.raise_signal(signum)
    except Exception:  # pragma: no cover - rare signal error
        raise SystemExit(128 + signum)
