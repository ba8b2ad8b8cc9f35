from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List

BACKENDS = {"memory", "sqlite", "json"}


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'memory' (default), 'sqlite' or 'json'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/countdowns.db'
    - JSON_STORE_PATH: path to the JSON document store. Default './data/countdowns.json'
    - JSON_STORE_MAX_BYTES: size quota of the JSON store in bytes; 0 disables it. Default 5 MiB
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - LOG_LEVEL: root log level name. Default 'INFO'
    """

    persistence_backend: str
    sqlite_db_path: str
    json_store_path: str
    json_store_max_bytes: int
    cors_allow_origins: List[str]
    log_level: str


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_int(value: str, default: int) -> int:
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in BACKENDS:
        # Fallback to memory if unsupported
        backend = "memory"

    return Settings(
        persistence_backend=backend,
        sqlite_db_path=_get_env("SQLITE_DB_PATH", "./data/countdowns.db").strip(),
        json_store_path=_get_env("JSON_STORE_PATH", "./data/countdowns.json").strip(),
        json_store_max_bytes=_parse_int(_get_env("JSON_STORE_MAX_BYTES", str(5 * 1024 * 1024)), 5 * 1024 * 1024),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
    )
