from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_KEY_PREFIX_RE = re.compile(r"^[A-Z0-9]{2,10}$")


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getbool(name: str, default: bool) -> bool:
    raw = _getenv(name, "true" if default else "false").lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    key_code_prefix: str = "XFLEX"
    catalog_cache_ttl: int = 300
    jwt_public_key_pem: str | None = None

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")
    prefix_raw = _getenv("KEY_CODE_PREFIX", "XFLEX").upper()
    ttl_raw = _getenv("CATALOG_CACHE_TTL", "300")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    if not _KEY_PREFIX_RE.match(prefix_raw):
        raise ValueError(
            f"KEY_CODE_PREFIX must be 2-10 letters/digits (got {prefix_raw!r})"
        )

    try:
        catalog_cache_ttl = int(ttl_raw)
    except ValueError:
        raise ValueError(
            f"CATALOG_CACHE_TTL must be an integer (got {ttl_raw!r})"
        ) from None
    if catalog_cache_ttl < 0:
        raise ValueError(f"CATALOG_CACHE_TTL must be >= 0 (got {catalog_cache_ttl})")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getbool("LOG_JSON", False),
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        key_code_prefix=prefix_raw,
        catalog_cache_ttl=catalog_cache_ttl,
        jwt_public_key_pem=os.environ.get("JWT_PUBLIC_KEY", "").strip() or None,
    )


SETTINGS = load_settings()
