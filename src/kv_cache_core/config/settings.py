"""Cache settings using pydantic-settings."""

from __future__ import annotations

import math
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from kv_cache_core.constants import (
    DEFAULT_BUSY_TIMEOUT_SECONDS,
    DEFAULT_PATH,
    DEFAULT_SERIALIZER,
    DEFAULT_SPACE_NAME,
    DEFAULT_TTL_SECONDS,
    MEMORY_PATH,
    SPACE_NAME_PATTERN,
)


class Settings(BaseSettings):
    """Central configuration for a cache key-value space."""

    model_config = SettingsConfigDict(env_prefix="KV_CACHE_", env_file=".env", extra="ignore")

    # --- Space ---
    name: str = Field(
        default=DEFAULT_SPACE_NAME,
        pattern=SPACE_NAME_PATTERN,
        description="Name of the key-value space (one SQL table per space)",
    )
    path: str = Field(
        default=DEFAULT_PATH,
        description="SQLite database file, or ':memory:' for an ephemeral cache",
    )

    # --- Expiry ---
    default_ttl_seconds: float | None = Field(
        default=DEFAULT_TTL_SECONDS,
        description="TTL applied when a write passes none; None means never expire",
    )

    # --- Serialization ---
    serializer: Literal["json", "cbor"] = Field(
        default=DEFAULT_SERIALIZER,
        description="Built-in value serializer: 'json' (text) or 'cbor' (binary)",
    )

    # --- Storage engine ---
    busy_timeout_seconds: float = Field(
        default=DEFAULT_BUSY_TIMEOUT_SECONDS,
        description="Seconds SQLite waits on a locked database before failing",
    )
    echo_sql: bool = Field(
        default=False,
        description="Echo emitted SQL through the sqlalchemy.engine logger",
    )

    @field_validator("path")
    @classmethod
    def validate_path(cls, value: str) -> str:
        """Reject an empty path; SQLite would silently open a temp database."""
        if not value.strip():
            msg = "path must be a file path or ':memory:'"
            raise ValueError(msg)
        return value

    @field_validator("default_ttl_seconds")
    @classmethod
    def validate_default_ttl(cls, value: float | None) -> float | None:
        """Reject NaN, which would compare false against every expiry."""
        if value is not None and math.isnan(value):
            msg = "default_ttl_seconds must be a number or None, not NaN"
            raise ValueError(msg)
        return value

    @property
    def in_memory(self) -> bool:
        """True when the space lives in a private in-memory database."""
        return self.path == MEMORY_PATH

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL for the aiosqlite driver."""
        if self.in_memory:
            return "sqlite+aiosqlite://"
        return f"sqlite+aiosqlite:///{Path(self.path).expanduser()}"
