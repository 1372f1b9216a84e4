"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
ingestion run, loading and validating environment variables at startup.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        alias="DATABASE_URL",
        description="PostgreSQL (or SQLite for local runs) connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError("DATABASE_URL must be a PostgreSQL or sqlite+aiosqlite connection string")
        return v


class ExplorerSettings(BaseSettings):
    """Blockbook explorer API settings."""

    model_config = SettingsConfigDict(env_prefix="EXPLORER_", extra="ignore")

    url: str = Field(
        default="https://ltcbook.nownodes.io/api/v2",
        alias="EXPLORER_URL",
        description="Explorer REST API base URL",
    )
    api_key: SecretStr | None = Field(
        default=None,
        alias="EXPLORER_API_KEY",
        description="API key sent in the api-key header",
    )
    request_delay_seconds: float = Field(
        default=2.0,
        alias="EXPLORER_REQUEST_DELAY_SECONDS",
        ge=0.0,
        le=60.0,
        description="Fixed delay after every successful explorer call",
    )
    max_retries: int = Field(
        default=3,
        alias="EXPLORER_MAX_RETRIES",
        ge=1,
        le=20,
        description="Maximum attempts per explorer request",
    )
    retry_base_delay_seconds: float = Field(
        default=1.0,
        alias="EXPLORER_RETRY_BASE_DELAY_SECONDS",
        ge=0.0,
        le=60.0,
        description="Backoff unit; attempt n waits base * 2**n seconds",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        alias="EXPLORER_REQUEST_TIMEOUT_SECONDS",
        gt=0.0,
        le=600.0,
        description="Per-request HTTP timeout",
    )
    page_size: int = Field(
        default=1000,
        alias="EXPLORER_PAGE_SIZE",
        ge=1,
        le=1000,
        description="Transactions per address page (API maximum is 1000)",
    )
    max_pages: int = Field(
        default=20,
        alias="EXPLORER_MAX_PAGES",
        ge=1,
        le=10_000,
        description="Hard cap on pages fetched per address",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("EXPLORER_URL must be an HTTP(S) endpoint")
        return v.rstrip("/")


class BlockchainSettings(BaseSettings):
    """Target blockchain settings."""

    model_config = SettingsConfigDict(env_prefix="BLOCKCHAIN_", extra="ignore")

    symbol: str = Field(
        default="ltc",
        alias="BLOCKCHAIN_SYMBOL",
        description="Blockchain / token symbol as stored in the blockchains table",
    )
    name: str = Field(
        default="Litecoin",
        alias="BLOCKCHAIN_NAME",
        description="Human readable chain name (logging only)",
    )
    avg_block_time_seconds: int = Field(
        default=150,
        alias="BLOCKCHAIN_AVG_BLOCK_TIME_SECONDS",
        ge=1,
        le=3600,
        description="Average block interval",
    )
    confirmations: int = Field(
        default=6,
        alias="BLOCKCHAIN_CONFIRMATIONS",
        ge=0,
        le=1000,
        description="Confirmation depth used as a finality proxy",
    )

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("BLOCKCHAIN_SYMBOL must not be empty")
        return v


class IngestionSettings(BaseSettings):
    """Backfill window and batching settings."""

    model_config = SettingsConfigDict(env_prefix="INGEST_", extra="ignore")

    start_date: date = Field(
        default=date(2025, 3, 1),
        alias="INGEST_START_DATE",
        description="First day of the ingestion window (UTC, inclusive)",
    )
    end_date: date = Field(
        default=date(2025, 3, 31),
        alias="INGEST_END_DATE",
        description="Last day of the ingestion window (UTC, inclusive through end of day)",
    )
    batch_size: int = Field(
        default=50,
        alias="INGEST_BATCH_SIZE",
        ge=1,
        le=10_000,
        description="Transactions persisted per database transaction",
    )
    batch_delay_seconds: float = Field(
        default=0.5,
        alias="INGEST_BATCH_DELAY_SECONDS",
        ge=0.0,
        le=60.0,
        description="Pause between batches",
    )
    max_parallel_wallets: int = Field(
        default=1,
        alias="INGEST_MAX_PARALLEL_WALLETS",
        ge=1,
        le=64,
        description="Wallet pipelines processed concurrently (1 = sequential)",
    )

    @model_validator(mode="after")
    def validate_window(self) -> IngestionSettings:
        if self.end_date < self.start_date:
            raise ValueError("INGEST_END_DATE must not be before INGEST_START_DATE")
        return self


class PriceSettings(BaseSettings):
    """Fallback prices used when the price store has nothing usable."""

    model_config = SettingsConfigDict(env_prefix="PRICE_", extra="ignore")

    fallback_usdt: Decimal = Field(
        default=Decimal("100"),
        alias="PRICE_FALLBACK_USDT",
        description="Fallback USDT price per coin",
    )
    fallback_btc: Decimal = Field(
        default=Decimal("0.002"),
        alias="PRICE_FALLBACK_BTC",
        description="Fallback BTC price per coin",
    )

    @field_validator("fallback_usdt", "fallback_btc")
    @classmethod
    def validate_positive(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("fallback prices must be >= 0")
        return v


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from chain_volume_ingestor.config import get_settings

        settings = get_settings()
        print(settings.database.url)
        print(settings.ingestion.start_date)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # NOTE: Each nested BaseSettings must be given the same env_file, otherwise it
    # will only read from the process environment (and ignore `.env`).
    database: DatabaseSettings = Field(
        default_factory=lambda: DatabaseSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    explorer: ExplorerSettings = Field(
        default_factory=lambda: ExplorerSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    blockchain: BlockchainSettings = Field(
        default_factory=lambda: BlockchainSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    ingestion: IngestionSettings = Field(
        default_factory=lambda: IngestionSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    price: PriceSettings = Field(
        default_factory=lambda: PriceSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "database_url": self._redact_url(self.database.url),
            "explorer": {
                "url": self.explorer.url,
                "api_key": "(set)" if self.explorer.api_key else "(not set)",
                "request_delay_seconds": str(self.explorer.request_delay_seconds),
                "max_retries": str(self.explorer.max_retries),
                "page_size": str(self.explorer.page_size),
            },
            "blockchain": {
                "symbol": self.blockchain.symbol,
                "name": self.blockchain.name,
            },
            "ingestion": {
                "start_date": self.ingestion.start_date.isoformat(),
                "end_date": self.ingestion.end_date.isoformat(),
                "batch_size": str(self.ingestion.batch_size),
                "max_parallel_wallets": str(self.ingestion.max_parallel_wallets),
            },
            "log_level": self.log_level,
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If required environment variables are missing
            or have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
