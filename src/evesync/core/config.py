"""
evesync Centralized Configuration

Provides validated, type-safe access to all environment variables using Pydantic Settings.

Usage:
    from evesync.core.config import get_settings

    settings = get_settings()
    policy = FreshnessPolicy(max_age_seconds=settings.max_age_seconds)

Settings are only read by factories and defaults. Sync components receive
their values through constructor arguments so tests can build them directly.

Environment Variables:
    EVESYNC_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    EVESYNC_DEBUG: Legacy debug flag (enables DEBUG level if set)
    EVESYNC_LOG_JSON: Output logs as JSON
    EVESYNC_MAX_AGE_SECONDS: Market data max age before refetch (default 1800)
    EVESYNC_TIMEOUT_MS: Remote call timeout in milliseconds (default 7000)
    EVESYNC_API_BASE_URL: Remote API base URL
    EVESYNC_MARKET_BASE_URL: Base URL for market endpoints
    EVESYNC_LOGIN_URL: SSO login base URL
    EVESYNC_SSO_CLIENT_ID / EVESYNC_SSO_CLIENT_SECRET: SSO application credentials
    EVESYNC_DB_PATH: SQLite record store path
    EVESYNC_RATE_LIMIT_RETRIES: Retries for rate-limited calls (0 = disabled)
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_API_BASE_URL,
    DEFAULT_LOGIN_URL,
    DEFAULT_MARKET_BASE_URL,
    DEFAULT_MAX_AGE_SECONDS,
    DEFAULT_TIMEOUT_MS,
)


def _find_project_root() -> Path | None:
    """Search upward from this file for the directory holding pyproject.toml."""
    current = Path(__file__).resolve().parent
    for _ in range(10):
        if (current / "pyproject.toml").exists():
            return current
        parent = current.parent
        if parent == current:
            break
        current = parent
    return None


def _find_project_env_file() -> Path | None:
    root = _find_project_root()
    if root is None:
        return None
    env_file = root / ".env"
    return env_file if env_file.exists() else None


_ENV_FILE = _find_project_env_file()


class SyncSettings(BaseSettings):
    """
    evesync configuration settings with validation.

    Environment variables are automatically loaded with the EVESYNC_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="EVESYNC_",
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # =========================================================================
    # Logging Configuration
    # =========================================================================

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Log level for evesync components",
    )

    debug: bool = Field(
        default=False,
        description="Legacy debug flag (enables DEBUG level if set)",
    )

    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format for machine parsing",
    )

    # =========================================================================
    # Freshness & Remote Calls
    # =========================================================================

    max_age_seconds: int = Field(
        default=DEFAULT_MAX_AGE_SECONDS,
        ge=0,
        description="Age in seconds after which cached market data is refetched",
    )

    timeout_ms: int = Field(
        default=DEFAULT_TIMEOUT_MS,
        gt=0,
        description="Timeout for a single remote call in milliseconds",
    )

    api_base_url: str = Field(
        default=DEFAULT_API_BASE_URL,
        description="Base URL of the remote game API",
    )

    market_base_url: str = Field(
        default=DEFAULT_MARKET_BASE_URL,
        description="Base URL for market:* endpoints",
    )

    rate_limit_retries: int = Field(
        default=0,
        ge=0,
        description="Retries for rate-limited remote calls (transport errors are never retried)",
    )

    # =========================================================================
    # SSO
    # =========================================================================

    login_url: str = Field(
        default=DEFAULT_LOGIN_URL,
        description="SSO login base URL (with trailing slash)",
    )

    sso_client_id: Optional[str] = Field(default=None, description="SSO application client ID")

    sso_client_secret: Optional[str] = Field(
        default=None, description="SSO application client secret"
    )

    # =========================================================================
    # Persistence
    # =========================================================================

    db_path: Path = Field(
        default_factory=lambda: (_find_project_root() or Path.cwd()) / "cache" / "evesync.db",
        description="SQLite record store path",
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level", mode="before")
    @classmethod
    def uppercase_log_level(cls, v: str) -> str:
        """Normalize log level to uppercase."""
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("api_base_url", "market_base_url", "login_url")
    @classmethod
    def ensure_trailing_slash(cls, v: str) -> str:
        return v if v.endswith("/") else v + "/"

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def effective_log_level(self) -> str:
        """
        Get effective log level, respecting legacy EVESYNC_DEBUG.

        An explicit EVESYNC_LOG_LEVEL wins; EVESYNC_DEBUG only lifts the
        default WARNING level to DEBUG.
        """
        if self.debug and self.log_level == "WARNING":
            return "DEBUG"
        return self.log_level

    @property
    def log_level_int(self) -> int:
        """Get effective log level as logging constant."""
        return getattr(logging, self.effective_log_level)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


# =============================================================================
# Singleton Accessor
# =============================================================================


@lru_cache(maxsize=1)
def get_settings() -> SyncSettings:
    """
    Get the singleton settings instance.

    The settings are validated at first access.
    """
    return SyncSettings()


def reset_settings() -> None:
    """
    Reset the settings cache (for testing).

    After calling this, the next get_settings() call will
    reload settings from environment variables.
    """
    get_settings.cache_clear()
