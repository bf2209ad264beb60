"""
Configuration models for logshipper using Pydantic v2 Settings.

Every field can be set from the environment with the ``LOGSHIPPER_`` prefix
and ``__`` as the nested delimiter, e.g.
``LOGSHIPPER_TRANSPORT__SEND_INTERVAL_MS=1000`` or
``LOGSHIPPER_INTAKE__API_KEY=...``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import (  # type: ignore[import-not-found]
    BaseSettings,
    SettingsConfigDict,
)

from .scheduler import (
    DEFAULT_ITEM_SIZE_LIMIT,
    DEFAULT_MAX_BATCH_ITEMS,
    DEFAULT_PAYLOAD_SIZE_LIMIT,
)

LATEST_CONFIG_SCHEMA_VERSION = "1.0"


class CoreSettings(BaseModel):
    """Library-wide toggles."""

    internal_logging_enabled: bool = Field(
        default=False,
        description="Emit DEBUG/WARN diagnostics for internal errors to stderr",
    )
    enable_metrics: bool = Field(
        default=False,
        description="Export Prometheus counters on an isolated registry",
    )


class TransportSettings(BaseModel):
    """Batching, flushing and retry behavior."""

    ddsource: str | None = Field(
        default=None,
        description="Integration name the logs originate from",
    )
    ddtags: str | None = Field(
        default=None,
        description='Comma separated tags, e.g. "env:prod,org:finance"',
    )
    service: str | None = Field(
        default=None,
        description="Name of the application or service generating the logs",
    )
    retries: int = Field(
        default=5,
        ge=0,
        description="Retries after the first failed submission before on_error",
    )
    retry_base_delay: float = Field(
        default=1.0,
        ge=0.0,
        description="Delay before the first retry, doubled on each retry",
    )
    retry_max_delay: float = Field(
        default=30.0,
        ge=0.0,
        description="Upper bound for a single retry delay",
    )
    send_interval_ms: int = Field(
        default=3000,
        ge=0,
        description="Periodic flush interval; 0 disables the time trigger",
    )
    send_immediate: bool = Field(
        default=False,
        description="Submit every record on its own and disable batching",
    )
    payload_size_limit: int = Field(
        default=DEFAULT_PAYLOAD_SIZE_LIMIT,
        ge=1,
        description="Flush once the open batch size exceeds this many bytes",
    )
    item_size_limit: int = Field(
        default=DEFAULT_ITEM_SIZE_LIMIT,
        ge=1,
        description="Report items larger than this many bytes as oversize",
    )
    max_batch_items: int = Field(
        default=DEFAULT_MAX_BATCH_ITEMS,
        ge=1,
        description="Flush once the open batch holds more than this many items",
    )
    max_concurrent_deliveries: int | None = Field(
        default=None,
        ge=1,
        description="Optional cap on concurrent submissions; None is unbounded",
    )

    @field_validator("ddsource", "ddtags", "service")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @model_validator(mode="after")
    def _check_limits(self) -> TransportSettings:
        if self.item_size_limit > self.payload_size_limit:
            raise ValueError("item_size_limit must not exceed payload_size_limit")
        if self.retry_max_delay < self.retry_base_delay:
            raise ValueError("retry_max_delay must be >= retry_base_delay")
        return self

    @property
    def flush_interval_seconds(self) -> float | None:
        if self.send_immediate or self.send_interval_ms <= 0:
            return None
        return self.send_interval_ms / 1000.0


class IntakeSettings(BaseModel):
    """HTTP intake endpoint parameters."""

    api_key: SecretStr | None = Field(
        default=None, description="API key sent in the DD-API-KEY header"
    )
    site: str = Field(default="datadoghq.com", description="Intake site domain")
    url: str | None = Field(
        default=None,
        description="Explicit intake URL; overrides the URL derived from site",
    )
    timeout_seconds: float = Field(default=10.0, gt=0.0)

    @property
    def endpoint(self) -> str:
        if self.url:
            return self.url
        return f"https://http-intake.logs.{self.site}/api/v2/logs"


class ShutdownSettings(BaseModel):
    install_handlers: bool = Field(
        default=True,
        description="Register atexit and signal hooks when a transport starts",
    )
    signal_handler_enabled: bool = Field(
        default=True, description="Install SIGTERM/SIGINT handlers"
    )
    drain_timeout_seconds: float = Field(
        default=2.0,
        ge=0.0,
        description="Maximum seconds to wait for in-flight deliveries on stop",
    )


class Settings(BaseSettings):
    """Top-level configuration model."""

    schema_version: str = Field(default=LATEST_CONFIG_SCHEMA_VERSION)

    core: CoreSettings = Field(default_factory=CoreSettings)
    transport: TransportSettings = Field(default_factory=TransportSettings)
    intake: IntakeSettings = Field(default_factory=IntakeSettings)
    shutdown: ShutdownSettings = Field(default_factory=ShutdownSettings)

    model_config = SettingsConfigDict(
        env_prefix="LOGSHIPPER_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    def to_dict(self) -> dict[str, object]:
        from typing import cast

        return cast(
            dict[str, object],
            self.model_dump(by_alias=True, exclude_none=True),
        )
