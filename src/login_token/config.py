"""Service configuration.

All environment-based configuration flows through this module. Settings
come from ``LOGIN_TOKEN_*`` environment variables or a ``.env`` file.

Usage::

    from login_token.config import get_settings

    settings = get_settings()
    print(settings.db_path, settings.sweep_interval_seconds)
"""
from __future__ import annotations

import datetime
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoginTokenSettings(BaseSettings):
    """Configuration for the login-token service."""

    model_config = SettingsConfigDict(
        env_prefix="LOGIN_TOKEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # TRANSPORT
    # ==========================================================================

    host: str = Field(default="0.0.0.0", description="HTTP bind address")
    port: int = Field(default=8088, ge=0, le=65535, description="HTTP port")
    requester_header: str = Field(
        default="X-Nexus-User",
        description="Header carrying the requester identity set by the gateway",
    )

    # ==========================================================================
    # STORAGE
    # ==========================================================================

    db_path: str = Field(
        default="login-token.db",
        description="SQLite database file, or ':memory:' for the in-memory store",
    )

    # ==========================================================================
    # LIFECYCLE
    # ==========================================================================

    sweep_interval_seconds: float = Field(
        default=86400.0, gt=0, description="Seconds between background sweeps"
    )
    otp_lifetime_seconds: float = Field(
        default=3600.0, gt=0, description="Lifetime of tokens issued by otp"
    )

    # ==========================================================================
    # PERMISSIONS
    # ==========================================================================

    admin_tag: str = Field(default="@admin", description="Tag granting impersonation")
    list_tag: str = Field(default="@token.list", description="Tag granting token listing")
    permissions_file: Optional[Path] = Field(
        default=None, description="JSON grant table for the static permission delegate"
    )

    # ==========================================================================
    # LOGGING / AUDIT
    # ==========================================================================

    log_level: str = Field(default="INFO", description="Root logging level")
    audit_log_path: Optional[Path] = Field(
        default=None, description="JSONL audit trail; omitted means no audit trail"
    )

    @property
    def sweep_interval(self) -> datetime.timedelta:
        return datetime.timedelta(seconds=self.sweep_interval_seconds)

    @property
    def otp_lifetime(self) -> datetime.timedelta:
        return datetime.timedelta(seconds=self.otp_lifetime_seconds)


@lru_cache(maxsize=1)
def get_settings() -> LoginTokenSettings:
    """Return the process-wide settings, read once from the environment."""
    return LoginTokenSettings()


def clear_settings_cache() -> None:
    """Forget cached settings so the next :func:`get_settings` re-reads them."""
    get_settings.cache_clear()
