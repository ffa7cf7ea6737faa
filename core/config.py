"""Note store configuration."""

import os
from enum import Enum

from pydantic import BaseModel, Field

ENV_PREFIX = "PINGNOTE_"


class BackendKind(str, Enum):
    """Which storage backend the process runs on."""

    MEMORY = "memory"
    VALKEY = "valkey"
    POSTGRES = "postgres"


class StoreConfig(BaseModel):
    """
    Note store configuration.

    Durations are in seconds. Connection URLs are optional here - when left
    unset they are read from Vault at store construction time.
    """

    backend: BackendKind = Field(
        default=BackendKind.MEMORY,
        description="Storage backend, chosen once at process start",
    )

    # Note lifetime
    default_ttl_seconds: int = Field(
        default=600,  # 10 minutes
        description="TTL used when the client sends none",
        ge=60,
    )
    max_ttl_seconds: int = Field(
        default=86400,  # 24 hours
        description="Upper bound that client-supplied TTLs are clamped to",
        ge=60,
        le=7 * 86400,
    )

    # Sweeper
    memory_sweep_interval_seconds: int = Field(
        default=60,
        description="Cleanup interval for the in-memory backend",
        ge=1,
    )
    postgres_sweep_interval_seconds: int = Field(
        default=300,
        description="Cleanup interval for the PostgreSQL backend",
        ge=1,
    )

    # Valkey
    deleted_grace_seconds: int = Field(
        default=60,
        description="TTL left on a deleted note blob before Valkey reclaims it",
        ge=1,
        le=3600,
    )

    # Live updates
    subscriber_queue_size: int = Field(
        default=64,
        description="Pending messages per live subscriber before it is dropped",
        ge=1,
    )
    live_keepalive_seconds: int = Field(
        default=15,
        description="Idle interval between SSE keep-alive comments",
        ge=1,
        le=120,
    )

    # Infrastructure
    operation_timeout_seconds: float = Field(
        default=5.0,
        description="Socket / statement timeout for backend round trips",
        gt=0,
    )
    valkey_url: str | None = Field(
        default=None,
        description="Valkey URL; falls back to Vault when unset",
    )
    database_url: str | None = Field(
        default=None,
        description="PostgreSQL DSN; falls back to Vault when unset",
    )
    public_base_url: str | None = Field(
        default=None,
        description="Base for share links; derived from the request when unset",
    )

    def sweep_interval_seconds(self) -> int:
        """Sweep interval for the configured backend (0 = native expiry)."""
        if self.backend == BackendKind.MEMORY:
            return self.memory_sweep_interval_seconds
        if self.backend == BackendKind.POSTGRES:
            return self.postgres_sweep_interval_seconds
        return 0


def load_store_config() -> StoreConfig:
    """
    Build StoreConfig from PINGNOTE_* environment variables.

    Only variables that are set override the defaults, e.g.
    PINGNOTE_BACKEND=valkey, PINGNOTE_MAX_TTL_SECONDS=3600.
    Raises pydantic.ValidationError on out-of-range values.
    """
    values = {}
    for name in StoreConfig.model_fields:
        raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
        if raw is not None:
            values[name] = raw
    return StoreConfig(**values)
