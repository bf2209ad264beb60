"""
Async retry with exponential backoff.

``AsyncRetrier`` re-invokes a coroutine factory until it succeeds, a
non-retryable exception is raised, or ``max_attempts`` is reached. Delays grow
as ``base_delay * multiplier ** (attempt - 1)``, are capped at ``max_delay``
and optionally jittered.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol, TypeVar

from .errors import RetryExhaustedError

T = TypeVar("T")


@dataclass
class RetryConfig:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    multiplier: float = 2.0
    jitter: bool = True
    timeout_per_attempt: float | None = None
    retryable_exceptions: list[type[BaseException]] = field(
        default_factory=lambda: [Exception]
    )

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")

    @classmethod
    def from_retries(
        cls,
        retries: int,
        *,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
    ) -> RetryConfig:
        """Build a config where ``retries`` counts attempts after the first."""
        return cls(
            max_attempts=max(0, retries) + 1,
            base_delay=base_delay,
            max_delay=max_delay,
        )


@dataclass
class RetryStats:
    attempt_count: int = 0
    total_delay: float = 0.0
    last_exception: BaseException | None = None


class RetryCallable(Protocol):
    async def __call__(
        self, func: Callable[[], Awaitable[Any]]
    ) -> Any:  # pragma: no cover - structural protocol
        ...


class AsyncRetrier:
    """Retry a coroutine factory according to a ``RetryConfig``.

    ``stats`` reflects the most recent ``retry()`` call only.
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        *,
        on_retry: Callable[[int, BaseException, float], None] | None = None,
    ) -> None:
        self.config = config or RetryConfig()
        self.stats = RetryStats()
        self._on_retry = on_retry

    def _is_retryable(self, exc: BaseException) -> bool:
        return any(isinstance(exc, t) for t in self.config.retryable_exceptions)

    def _delay_for(self, attempt: int) -> float:
        cfg = self.config
        delay = min(cfg.base_delay * (cfg.multiplier ** (attempt - 1)), cfg.max_delay)
        if cfg.jitter and delay > 0:
            delay *= random.uniform(0.5, 1.0)
        return delay

    async def _attempt(self, func: Callable[[], Awaitable[T]]) -> T:
        timeout = self.config.timeout_per_attempt
        if timeout is None:
            return await func()
        return await asyncio.wait_for(func(), timeout=timeout)

    async def retry(self, func: Callable[[], Awaitable[T]]) -> T:
        stats = RetryStats()
        self.stats = stats
        max_attempts = self.config.max_attempts
        while True:
            stats.attempt_count += 1
            try:
                return await self._attempt(func)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                stats.last_exception = exc
                if not self._is_retryable(exc):
                    raise
                if stats.attempt_count >= max_attempts:
                    raise RetryExhaustedError(
                        f"All {max_attempts} retry attempts exhausted",
                        retry_stats=stats,
                        cause=exc,
                    ) from exc
                delay = self._delay_for(stats.attempt_count)
                if self._on_retry is not None:
                    try:
                        self._on_retry(stats.attempt_count, exc, delay)
                    except Exception:
                        pass
                stats.total_delay += delay
                await asyncio.sleep(delay)

    async def __call__(self, func: Callable[[], Awaitable[T]]) -> T:
        return await self.retry(func)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    *,
    config: RetryConfig | None = None,
) -> T:
    """Convenience wrapper around ``AsyncRetrier(config).retry(func)``."""
    return await AsyncRetrier(config).retry(func)
