import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_MAX_STORAGE_SLOTS = 500
DEFAULT_BATCH_SIZE = 50
DEFAULT_BATCH_DELAY_SECONDS = 0.1
DEFAULT_CACHE_TTL = 300
DEFAULT_PROVIDED_CACHE_TTL = 60
DEFAULT_CACHE_MAX_ENTRIES = 1024

# Request-level ceilings enforced by the service entry points.
MAX_SLOTS_LIMIT = 1000
MAX_EXPLICIT_SLOTS = 100

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


@dataclass
class Config:
    rpc_url: str
    explorer_api_url: Optional[str] = None
    explorer_api_key: Optional[str] = None
    request_timeout: int = 10
    max_storage_slots: int = DEFAULT_MAX_STORAGE_SLOTS
    batch_size: int = DEFAULT_BATCH_SIZE
    batch_delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL
    provided_cache_ttl_seconds: int = DEFAULT_PROVIDED_CACHE_TTL
    cache_max_entries: int = DEFAULT_CACHE_MAX_ENTRIES
    explorer_max_retries: int = 2
    explorer_backoff_seconds: float = 0.5
    log_level: str = "INFO"


def _positive_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be a positive integer, got '{raw}'.") from exc
    if value <= 0:
        raise ValueError(f"{name} must be a positive integer, got '{raw}'.")
    return value


def _non_negative_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be a non-negative number, got '{raw}'.") from exc
    if value < 0:
        raise ValueError(f"{name} must be a non-negative number, got '{raw}'.")
    return value


def _optional_url(name: str) -> Optional[str]:
    raw = (os.getenv(name) or "").strip()
    return raw.rstrip("/") or None


def load_config() -> Config:
    """Load configuration from environment variables."""
    rpc_url = (os.getenv("RPC_URL") or "").strip()
    if not rpc_url:
        raise ValueError("RPC_URL is required but not set.")

    log_level = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()
    if log_level not in LOG_LEVELS:
        allowed = ", ".join(LOG_LEVELS)
        raise ValueError(f"Unknown LOG_LEVEL '{log_level}'. Supported: {allowed}.")

    return Config(
        rpc_url=rpc_url,
        explorer_api_url=_optional_url("EXPLORER_API_URL"),
        explorer_api_key=(os.getenv("EXPLORER_API_KEY") or "").strip() or None,
        request_timeout=_positive_int("REQUEST_TIMEOUT", 10),
        max_storage_slots=_positive_int("MAX_STORAGE_SLOTS", DEFAULT_MAX_STORAGE_SLOTS),
        batch_size=_positive_int("BATCH_SIZE", DEFAULT_BATCH_SIZE),
        batch_delay_seconds=_non_negative_float("BATCH_DELAY_SECONDS", DEFAULT_BATCH_DELAY_SECONDS),
        cache_ttl_seconds=_positive_int("CACHE_TTL", DEFAULT_CACHE_TTL),
        provided_cache_ttl_seconds=_positive_int("CACHE_TTL_PROVIDED", DEFAULT_PROVIDED_CACHE_TTL),
        cache_max_entries=_positive_int("CACHE_MAX_ENTRIES", DEFAULT_CACHE_MAX_ENTRIES),
        explorer_max_retries=_positive_int("EXPLORER_RETRIES", 2),
        explorer_backoff_seconds=_non_negative_float("EXPLORER_BACKOFF_SECONDS", 0.5),
        log_level=log_level,
    )
