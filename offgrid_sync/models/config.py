"""Configuration models for the offgrid sync vault."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RemoteConfig(BaseModel):
    """Configuration for the remote record catalog."""

    base_url: str = Field(
        default="http://localhost:5000/api", description="Base URL of the catalog API"
    )
    timeout_seconds: float = Field(
        default=2.0, gt=0.0, le=60.0, description="Timeout for a single catalog request"
    )
    max_retries: int = Field(
        default=0, ge=0, le=5, description="Retries before falling back to the built-in catalog"
    )
    retry_base_delay: float = Field(
        default=0.5, ge=0.0, description="Initial retry delay in seconds"
    )


class StorageConfig(BaseModel):
    """Configuration for the local record store."""

    path: str = Field(default="offgrid_vault.db", description="SQLite database file")
    table: str = Field(
        default="offline_data", pattern=r"^[A-Za-z_][A-Za-z0-9_]*$", description="Table name"
    )


class QuotaConfig(BaseModel):
    """Configuration for storage accounting and admission control."""

    unit_cost_bytes: int = Field(
        default=12_400_000, ge=1, description="Fixed storage cost attributed to each record"
    )
    capacity_bytes: int | None = Field(
        default=None, description="Maximum vault size in bytes (None for unbounded)"
    )
    cost_policy: Literal["uniform", "content_size"] = Field(
        default="uniform", description="How per-record storage cost is derived"
    )

    @field_validator("capacity_bytes")
    @classmethod
    def validate_capacity(cls, v: int | None) -> int | None:
        """Capacity, when set, must be positive."""
        if v is not None and v <= 0:
            raise ValueError("capacity_bytes must be positive or null")
        return v


class TransferConfig(BaseModel):
    """Configuration for the simulated transfer driver."""

    checkpoints: list[int] = Field(
        default_factory=lambda: [20, 40, 60, 80, 100],
        description="Progress checkpoints reported during a transfer",
    )
    step_delay_seconds: float = Field(
        default=0.15, ge=0.0, description="Pause between checkpoints"
    )

    @field_validator("checkpoints")
    @classmethod
    def validate_checkpoints(cls, v: list[int]) -> list[int]:
        """Checkpoints must be non-decreasing, within 0..100 and end at 100."""
        if not v:
            raise ValueError("checkpoints cannot be empty")
        if any(p < 0 or p > 100 for p in v):
            raise ValueError("checkpoints must be within 0..100")
        if any(b < a for a, b in zip(v, v[1:])):
            raise ValueError("checkpoints must be non-decreasing")
        if v[-1] != 100:
            raise ValueError("the last checkpoint must be 100")
        return v


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=False,
        description="If True, output JSON logs. If False, use console format.",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional path to log file. If None, logs only to stdout.",
    )


class AppConfig(BaseSettings):
    """Main application configuration.

    This class uses pydantic-settings to load configuration from environment
    variables with the OFFGRID_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="OFFGRID_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    quota: QuotaConfig = Field(default_factory=QuotaConfig)
    transfer: TransferConfig = Field(default_factory=TransferConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
