from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


DEFAULT_FEED_URL = "https://aviationweather.gov/data/cache/metars.cache.csv.gz"

_FEED_URL_ENV = "METAR_FEED_URL"
_UPDATE_INTERVAL_ENV = "METAR_UPDATE_INTERVAL_SECONDS"
_ENABLE_UPDATES_ENV = "METAR_ENABLE_PERIODIC_UPDATES"
_FETCH_TIMEOUT_ENV = "METAR_FETCH_TIMEOUT_SECONDS"
_GRACE_PERIOD_ENV = "METAR_STARTUP_GRACE_SECONDS"
_RETENTION_HOURS_ENV = "METAR_RETENTION_HOURS"
_STORE_NAME_ENV = "METAR_STORE_NAME"
_STORE_PATH_ENV = "METAR_STORE_PATH"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    feed_url: str
    update_interval_seconds: float
    enable_periodic_updates: bool
    fetch_timeout_seconds: float
    startup_grace_seconds: float
    retention_hours: float
    store_name: str
    store_path: Optional[str]
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_float_env(name: str, default: float, allow_zero: bool = False) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    if parsed > 0 or (allow_zero and parsed == 0):
        return parsed
    return default


def _read_interval(default: float) -> float:
    # Values under the floor are passed through; the scheduler clamps them.
    value = os.getenv(_UPDATE_INTERVAL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        return float(candidate)
    except ValueError:
        return default


def _read_bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in _TRUE_VALUES:
        return True
    if candidate in _FALSE_VALUES:
        return False
    return default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        feed_url=_read_str_env(_FEED_URL_ENV, DEFAULT_FEED_URL),
        update_interval_seconds=_read_interval(600.0),
        enable_periodic_updates=_read_bool_env(_ENABLE_UPDATES_ENV, True),
        fetch_timeout_seconds=_read_float_env(_FETCH_TIMEOUT_ENV, 30.0),
        startup_grace_seconds=_read_float_env(_GRACE_PERIOD_ENV, 2.0, allow_zero=True),
        retention_hours=_read_float_env(_RETENTION_HOURS_ENV, 24.0),
        store_name=_read_str_env(_STORE_NAME_ENV, "observations"),
        store_path=_read_optional_env(_STORE_PATH_ENV, "./tmp/observations.json"),
        log_level=_read_log_level("INFO"),
    )
