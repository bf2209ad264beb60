"""
Error types for the shipping pipeline.

Every error raised or reported by logshipper derives from ``ShipperError`` and
carries an ``ErrorCategory`` so that hosts can route ``on_error`` reports
without string matching.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .retry import RetryStats


class ErrorCategory(str, Enum):
    """Coarse classification of shipping failures."""

    VALIDATION = "validation"
    DELIVERY = "delivery"
    NETWORK = "network"
    CONFIG = "config"
    SYSTEM = "system"


class ShipperError(Exception):
    """Base error for logshipper."""

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        cause: BaseException | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category
        self.cause = cause
        self.context: dict[str, Any] = dict(context)
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
        }
        if self.cause is not None:
            data["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        data.update(self.context)
        return data


class ConfigurationError(ShipperError):
    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, category=ErrorCategory.CONFIG, **context)


class OversizeItemError(ShipperError):
    """A single log item exceeds the per-item size ceiling.

    The item is still forwarded; this error is informational so the host can
    decide whether to persist it elsewhere.
    """

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            f"Log entry exceeds size limit of {limit} bytes: {size}",
            category=ErrorCategory.VALIDATION,
            size=size,
            limit=limit,
        )
        self.size = size
        self.limit = limit


class IntakeHTTPError(ShipperError):
    """The ingestion endpoint answered with a non-success status."""

    def __init__(self, status_code: int, body: str | None = None) -> None:
        super().__init__(
            f"Intake endpoint returned HTTP {status_code}",
            category=ErrorCategory.NETWORK,
            status_code=status_code,
            body=body,
        )
        self.status_code = status_code
        self.body = body


class RetryExhaustedError(ShipperError):
    """All retry attempts failed."""

    def __init__(
        self,
        message: str,
        *,
        retry_stats: RetryStats | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, category=ErrorCategory.NETWORK, cause=cause)
        self.retry_stats = retry_stats


class DeliveryError(ShipperError):
    """A batch could not be delivered after exhausting its retry budget."""

    def __init__(
        self,
        *,
        batch_token: str,
        item_count: int,
        attempts: int,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            f"Failed to deliver {item_count} logs after {attempts} attempts",
            category=ErrorCategory.DELIVERY,
            cause=cause,
            batch_token=batch_token,
            item_count=item_count,
            attempts=attempts,
        )
        self.batch_token = batch_token
        self.item_count = item_count
        self.attempts = attempts
