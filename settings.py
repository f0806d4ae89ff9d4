from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_DATA_DIR_ENV = "TELEMETRY_DATA_DIR"
_FILE_PREFIX_ENV = "TELEMETRY_FILE_PREFIX"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    data_dir: Optional[str]
    file_prefix: str
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
        data_dir=_read_optional_env(_DATA_DIR_ENV, "./tmp/telemetry"),
        file_prefix=_read_str_env(_FILE_PREFIX_ENV, "telemetry"),
        log_level=_read_log_level("INFO"),
    )
