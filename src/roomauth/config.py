# Configuration — environment-driven settings for the auth core.
# Created: 2026-03-02

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from roomauth import lifecycle


class Settings(BaseSettings):
    """Runtime settings loaded from ``ROOMAUTH_*`` environment variables."""

    config_dir: Path = Field(default_factory=lambda: Path.home() / ".roomauth")
    persist_tokens: bool = False

    # Lifetimes, in seconds
    access_token_ttl: int = 3600
    refresh_token_ttl: int = 30 * 24 * 3600
    authorization_code_ttl: int = 600
    consent_ttl: int = 90 * 24 * 3600

    account_linking_strategy: Literal["single", "multiple"] = "single"
    profile_sync_interval: int = 24 * 3600
    http_timeout: float = 15.0

    google_client_id: str | None = None
    google_client_secret: SecretStr = SecretStr("")
    google_redirect_uri: str = ""

    github_client_id: str | None = None
    github_client_secret: SecretStr = SecretStr("")
    github_redirect_uri: str = ""

    microsoft_client_id: str | None = None
    microsoft_client_secret: SecretStr = SecretStr("")
    microsoft_redirect_uri: str = ""
    microsoft_tenant: str = "common"

    model_config = SettingsConfigDict(env_prefix="ROOMAUTH_", env_file=".env", extra="ignore")


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
        lifecycle.register("settings", reset=reset_settings)
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None


def get_config_dir() -> Path:
    """Return the config directory, creating it on first use."""
    d = get_settings().config_dir
    d.mkdir(parents=True, exist_ok=True)
    return d
