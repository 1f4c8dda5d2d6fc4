"""
Booking engine settings, read from the environment (and .env) at import.

Scheduling policy, lock timeouts, cache lifetimes and the storage backend
are configurable here. Nothing is hardcoded in the scheduling or booking logic.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

T = TypeVar("T")

STORE_BACKENDS = ("memory", "json")


def _parse_env(env_var: str, default: str, cast: Callable[[str], T], kind: str) -> T:
    raw = os.getenv(env_var, default)
    try:
        return cast(raw.strip())
    except (ValueError, TypeError, AttributeError):
        raise ValueError(f"{env_var} must be {kind}, got {raw!r}") from None


def _safe_int(env_var: str, default: str) -> int:
    """Read a whole-number setting (minutes, days, counts)."""
    return _parse_env(env_var, default, int, "an integer")


def _safe_float(env_var: str, default: str) -> float:
    """Read a fractional setting (seconds)."""
    return _parse_env(env_var, default, float, "a number")


@dataclass(frozen=True)
class SchedulingConfig:
    """Booking policy: slot grid, lead time and cancellation window."""

    # 0 means "step by the service duration"
    slot_granularity_minutes: int = _safe_int("SLOT_GRANULARITY_MINUTES", "0")
    min_lead_minutes: int = _safe_int("MIN_LEAD_MINUTES", "0")
    cancellation_cutoff_minutes: int = _safe_int("CANCELLATION_CUTOFF_MINUTES", "0")
    availability_horizon_days: int = _safe_int("AVAILABILITY_HORIZON_DAYS", "14")
    max_dates_returned: int = _safe_int("MAX_DATES_RETURNED", "5")


@dataclass(frozen=True)
class ConcurrencyConfig:
    """Exclusive-access bounds for the write path."""

    lock_timeout_seconds: float = _safe_float("LOCK_TIMEOUT_SECONDS", "5.0")
    max_write_retries: int = _safe_int("MAX_WRITE_RETRIES", "3")


@dataclass(frozen=True)
class CacheConfig:
    """Availability cache lifetime. A TTL of 0 disables caching."""

    availability_ttl_seconds: float = _safe_float("AVAILABILITY_CACHE_TTL_SECONDS", "30.0")


@dataclass(frozen=True)
class StoreConfig:
    """Schedule repository backend selection."""

    backend: str = os.getenv("STORE_BACKEND", "memory")
    data_dir: str = os.getenv("STORE_DATA_DIR", "./data/schedule")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    engine_name: str = os.getenv("ENGINE_NAME", "salon-booking-engine")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.scheduling.slot_granularity_minutes < 0:
        raise ValueError(
            "SLOT_GRANULARITY_MINUTES must be >= 0, "
            f"got {config.scheduling.slot_granularity_minutes}"
        )
    if config.scheduling.min_lead_minutes < 0:
        raise ValueError(
            f"MIN_LEAD_MINUTES must be >= 0, got {config.scheduling.min_lead_minutes}"
        )
    if config.scheduling.cancellation_cutoff_minutes < 0:
        raise ValueError(
            "CANCELLATION_CUTOFF_MINUTES must be >= 0, "
            f"got {config.scheduling.cancellation_cutoff_minutes}"
        )
    if config.scheduling.availability_horizon_days < 1:
        raise ValueError(
            "AVAILABILITY_HORIZON_DAYS must be >= 1, "
            f"got {config.scheduling.availability_horizon_days}"
        )
    if config.scheduling.max_dates_returned < 1:
        raise ValueError(
            f"MAX_DATES_RETURNED must be >= 1, got {config.scheduling.max_dates_returned}"
        )
    if config.concurrency.lock_timeout_seconds <= 0:
        raise ValueError(
            "LOCK_TIMEOUT_SECONDS must be > 0, "
            f"got {config.concurrency.lock_timeout_seconds}"
        )
    if config.concurrency.max_write_retries < 0:
        raise ValueError(
            f"MAX_WRITE_RETRIES must be >= 0, got {config.concurrency.max_write_retries}"
        )
    if config.cache.availability_ttl_seconds < 0:
        raise ValueError(
            "AVAILABILITY_CACHE_TTL_SECONDS must be >= 0, "
            f"got {config.cache.availability_ttl_seconds}"
        )
    if config.store.backend not in STORE_BACKENDS:
        raise ValueError(
            f"STORE_BACKEND must be one of {STORE_BACKENDS}, got {config.store.backend!r}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.engine_name)
    return config


# Singleton instance
settings = load_config()
