"""
Core batching, delivery and shutdown components for logshipper.
"""

from .accumulator import BatchAccumulator
from .delivery import DeliveryPipeline, Submitter
from .errors import (
    ConfigurationError,
    DeliveryError,
    ErrorCategory,
    IntakeHTTPError,
    OversizeItemError,
    RetryExhaustedError,
    ShipperError,
)
from .models import Batch, LogItem, new_bucket_token
from .retry import AsyncRetrier, RetryConfig, RetryStats, retry_async
from .scheduler import FlushMode, FlushScheduler, FlushTrigger, ScheduleResult
from .settings import Settings
from .shutdown import ShutdownDrain
from .transform import convert_level, transform
from .transport import LogTransport, build_transport

__all__ = [
    "AsyncRetrier",
    "Batch",
    "BatchAccumulator",
    "ConfigurationError",
    "DeliveryError",
    "DeliveryPipeline",
    "ErrorCategory",
    "FlushMode",
    "FlushScheduler",
    "FlushTrigger",
    "IntakeHTTPError",
    "LogItem",
    "LogTransport",
    "OversizeItemError",
    "RetryConfig",
    "RetryExhaustedError",
    "RetryStats",
    "ScheduleResult",
    "Settings",
    "ShipperError",
    "ShutdownDrain",
    "Submitter",
    "build_transport",
    "convert_level",
    "new_bucket_token",
    "retry_async",
    "transform",
]
