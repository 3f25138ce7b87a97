"""
Ledger service configuration using Pydantic Settings.

This module provides configuration management for the ledger service,
allowing environment-based configuration with type validation and defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageConfig(BaseSettings):
    """Key-value storage and listing configuration."""

    model_config = SettingsConfigDict(env_prefix="LEDGER_STORAGE_")

    # Backend selection
    backend: Literal["memory", "sqlite"] = Field(
        default="memory",
        description="Key-value backend used by the ledger store",
    )
    sqlite_path: str = Field(
        default="ledger.sqlite3",
        description="Database file for the sqlite backend",
    )

    # Listing
    default_page_limit: int = Field(
        default=100,
        ge=1,
        le=500,
        description="Rows returned by a listing when no limit is given",
    )
    max_page_limit: int = Field(
        default=500,
        ge=1,
        description="Upper bound applied to a requested listing limit",
    )
    overfetch_factor: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Keys scanned per listing page as a multiple of the limit",
    )
    load_page_size: int = Field(
        default=256,
        ge=16,
        description="Keys scanned per page when loading the whole ledger",
    )


class FxConfig(BaseSettings):
    """Foreign-exchange provider configuration."""

    model_config = SettingsConfigDict(env_prefix="LEDGER_FX_")

    base_url: str = "https://api.frankfurter.app"
    timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="HTTP timeout for a single rate lookup",
    )
    cache_max_size: int = Field(
        default=1000,
        ge=1,
        description="Maximum number of cached daily rates",
    )


class ApiConfig(BaseSettings):
    """HTTP server configuration."""

    model_config = SettingsConfigDict(env_prefix="LEDGER_API_")

    host: str = "127.0.0.1"
    port: int = Field(default=8787, ge=1, le=65535)


class LedgerConfig(BaseSettings):
    """Root configuration combining all sub-configs."""

    model_config = SettingsConfigDict(env_prefix="LEDGER_")

    # Sub-configurations
    storage: StorageConfig = Field(default_factory=StorageConfig)
    fx: FxConfig = Field(default_factory=FxConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    # Global settings
    debug: bool = False
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )

    @classmethod
    def from_env(cls) -> "LedgerConfig":
        """
        Load configuration from environment variables.

        Returns:
            Configured LedgerConfig instance

        """
        return cls(
            storage=StorageConfig(),
            fx=FxConfig(),
            api=ApiConfig(),
        )


# Global config instance
config = LedgerConfig.from_env()
