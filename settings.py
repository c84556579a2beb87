from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_LOG_LEVEL_ENV = "LOG_LEVEL"
_WORKER_COUNT_ENV = "ENGINE_WORKER_COUNT"
_LOG_WINDOW_ENV = "EXTERNAL_LOG_WINDOW_MINUTES"
_LOG_LIMIT_ENV = "EXTERNAL_LOG_LIMIT"
_LOG_BASE_URL_ENV = "EXTERNAL_LOG_BASE_URL"
_TABLE_NAME_ENV = "TEMPERATURE_LOG_TABLE_NAME"
_TABLE_PATH_ENV = "TEMPERATURE_LOG_PERSISTENCE_PATH"


@dataclass(frozen=True)
class Settings:
    log_level: str
    engine_workers: int
    log_window_minutes: float
    log_limit: int
    log_base_url: Optional[str]
    log_table_name: str
    log_table_persistence_path: Optional[str]


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


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
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
    return parsed if parsed > 0 else default


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
        log_level=_read_log_level("INFO"),
        engine_workers=_read_positive_int(_WORKER_COUNT_ENV, 4),
        log_window_minutes=_read_positive_float(_LOG_WINDOW_ENV, 5.0),
        log_limit=_read_positive_int(_LOG_LIMIT_ENV, 10),
        log_base_url=_read_optional_env(_LOG_BASE_URL_ENV, None),
        log_table_name=_read_str_env(_TABLE_NAME_ENV, "temperature_logs"),
        log_table_persistence_path=_read_optional_env(_TABLE_PATH_ENV, None),
    )
