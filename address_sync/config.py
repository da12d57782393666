"""
Address Sync Configuration - Upstream endpoints, timeouts and limits.

All values can be overridden from the environment (a ``.env`` file
is loaded if present). API keys are never hardcoded.
"""

import os
from dataclasses import dataclass
from typing import Any, Optional

from dotenv import load_dotenv

from core.constants import (
    DEFAULT_EXPLORER_URL,
    DEFAULT_NATIVE_COIN_ID,
    DEFAULT_PRICE_API_URL,
    DEFAULT_PRICE_TTL_SECONDS,
    DEFAULT_SYNC_TIMEOUT_SECONDS,
    DEFAULT_TRANSACTION_LIMIT,
)
from storage.database import DEFAULT_DATABASE_URL


load_dotenv()


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value else default


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value else default


@dataclass
class SyncConfig:
    """Configuration of the address sync pipeline."""

    # Upstream endpoints
    explorer_api_url: str = DEFAULT_EXPLORER_URL
    explorer_api_key: Optional[str] = None
    price_api_url: str = DEFAULT_PRICE_API_URL
    price_api_key: Optional[str] = None
    native_coin_id: str = DEFAULT_NATIVE_COIN_ID

    # HTTP
    connect_timeout_seconds: float = 5.0
    read_timeout_seconds: float = 10.0
    heavy_read_timeout_seconds: float = 30.0  # transaction lists
    max_attempts: int = 2

    # Pass
    sync_timeout_seconds: float = DEFAULT_SYNC_TIMEOUT_SECONDS
    transaction_batch_limit: int = DEFAULT_TRANSACTION_LIMIT

    # Shared resources
    price_cache_ttl_seconds: float = DEFAULT_PRICE_TTL_SECONDS
    max_concurrent_syncs: int = 4

    # Database
    database_url: str = DEFAULT_DATABASE_URL

    def __post_init__(self) -> None:
        if self.sync_timeout_seconds <= 0:
            raise ValueError("sync_timeout_seconds must be positive")
        if self.transaction_batch_limit < 1:
            raise ValueError("transaction_batch_limit must be at least 1")
        if self.max_concurrent_syncs < 1:
            raise ValueError("max_concurrent_syncs must be at least 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def from_env(cls) -> "SyncConfig":
        """Build a config from environment variables, falling back to defaults."""
        return cls(
            explorer_api_url=os.environ.get("BLOCKSCOUT_API_URL", DEFAULT_EXPLORER_URL),
            explorer_api_key=os.environ.get("BLOCKSCOUT_API_KEY") or None,
            price_api_url=os.environ.get("COINGECKO_API_URL", DEFAULT_PRICE_API_URL),
            price_api_key=os.environ.get("COINGECKO_API_KEY") or None,
            native_coin_id=os.environ.get("NATIVE_COIN_ID", DEFAULT_NATIVE_COIN_ID),
            connect_timeout_seconds=_env_float("HTTP_CONNECT_TIMEOUT", 5.0),
            read_timeout_seconds=_env_float("HTTP_READ_TIMEOUT", 10.0),
            heavy_read_timeout_seconds=_env_float("HTTP_HEAVY_READ_TIMEOUT", 30.0),
            max_attempts=_env_int("HTTP_MAX_ATTEMPTS", 2),
            sync_timeout_seconds=_env_float("SYNC_TIMEOUT_SECONDS", DEFAULT_SYNC_TIMEOUT_SECONDS),
            transaction_batch_limit=_env_int("TRANSACTION_BATCH_LIMIT", DEFAULT_TRANSACTION_LIMIT),
            price_cache_ttl_seconds=_env_float("PRICE_CACHE_TTL_SECONDS", DEFAULT_PRICE_TTL_SECONDS),
            max_concurrent_syncs=_env_int("MAX_CONCURRENT_SYNCS", 4),
            database_url=os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL),
        )

    def to_dict(self) -> dict[str, Any]:
        """Loggable view; API keys are reported as present/absent only."""
        return {
            "explorer_api_url": self.explorer_api_url,
            "explorer_api_key": bool(self.explorer_api_key),
            "price_api_url": self.price_api_url,
            "price_api_key": bool(self.price_api_key),
            "native_coin_id": self.native_coin_id,
            "connect_timeout_seconds": self.connect_timeout_seconds,
            "read_timeout_seconds": self.read_timeout_seconds,
            "heavy_read_timeout_seconds": self.heavy_read_timeout_seconds,
            "max_attempts": self.max_attempts,
            "sync_timeout_seconds": self.sync_timeout_seconds,
            "transaction_batch_limit": self.transaction_batch_limit,
            "price_cache_ttl_seconds": self.price_cache_ttl_seconds,
            "max_concurrent_syncs": self.max_concurrent_syncs,
            "database_url": self.database_url.split("@")[-1],
        }
