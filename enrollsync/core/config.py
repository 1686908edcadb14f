from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]
AttributionStrategy = Literal["any_level", "binding"]

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getbool(name: str, default: bool) -> bool:
    raw = _getenv(name, "true" if default else "false").lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
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
    course_catalog_enabled: bool = True
    bundle_addon_enabled: bool = True
    membership_only: bool = False
    access_cache_ttl: int = 300
    attribution_strategy: AttributionStrategy = "any_level"

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
    ttl_raw = _getenv("ACCESS_CACHE_TTL", "300")
    strategy_raw = _getenv("ATTRIBUTION_STRATEGY", "any_level").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if strategy_raw not in ("any_level", "binding"):
        raise ValueError(
            f"ATTRIBUTION_STRATEGY must be any_level|binding (got {strategy_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    try:
        access_cache_ttl = int(ttl_raw)
    except ValueError:
        raise ValueError(
            f"ACCESS_CACHE_TTL must be an integer (got {ttl_raw!r})"
        ) from None
    if access_cache_ttl <= 0:
        raise ValueError(f"ACCESS_CACHE_TTL must be > 0 (got {access_cache_ttl})")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getbool("LOG_JSON", False),
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        course_catalog_enabled=_getbool("COURSE_CATALOG_ENABLED", True),
        bundle_addon_enabled=_getbool("BUNDLE_ADDON_ENABLED", True),
        membership_only=_getbool("MEMBERSHIP_ONLY_MODE", False),
        access_cache_ttl=access_cache_ttl,
        attribution_strategy=strategy_raw,
    )


# Module-level singleton so imports are cheap
SETTINGS = load_settings()
