"""Application configuration settings."""
from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Runtime toggles -----------------------------------------------------
# Environnement d'exécution: "dev" | "test" | "staging" | "production"
ENV = os.getenv("APP_ENV", "dev").lower()

PRODUCTION_ENVS = {"prod", "production"}

# Rôles autorisés à utiliser le service d'administration
ADMIN_ROLES = {"admin", "superadmin"}


class Settings(BaseSettings):
    """Environment configuration for the admin backend."""

    app_env: str = ENV
    database_url: str = "sqlite:///admin_service.db"
    LOG_LEVEL: str = "INFO"
    CORS_ALLOW_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]
    SENTRY_DSN: str | None = None
    PROMETHEUS_ENABLED: bool = True

    # --- Auth delegate ---------------------------------------------------
    AUTH_SERVICE_URL: str = "http://localhost:3001"
    INTERNAL_SERVICE_KEY: str | None = None
    AUTH_TIMEOUT_SECONDS: float = 5.0
    AUTH_LOGIN_TIMEOUT_SECONDS: float = 10.0

    # --- Realtime --------------------------------------------------------
    STATS_BROADCAST_ENABLED: bool = True
    JOB_STATS_INTERVAL_SECONDS: float = 5.0
    WS_VERIFY_TOKEN: bool = True
    WS_QUEUE_SIZE: int = 100

    # --- Alerts ----------------------------------------------------------
    ALERT_CAPACITY: int = 1000
    ALERT_STRICT_TRANSITIONS: bool = True

    # --- Retry -----------------------------------------------------------
    RETRY_ATTEMPTS: int = 3
    RETRY_BASE_DELAY_SECONDS: float = 0.2

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("INTERNAL_SERVICE_KEY")
    @classmethod
    def _strip_empty_secret(cls, value: str | None) -> str | None:
        """Normalise empty service keys to ``None``."""

        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @field_validator("AUTH_SERVICE_URL")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() in PRODUCTION_ENVS


class AppInfo(BaseModel):
    name: str = "admin-service"
    version: str = "1.0.0"


settings = Settings()


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return settings


__all__ = [
    "ENV",
    "ADMIN_ROLES",
    "PRODUCTION_ENVS",
    "Settings",
    "AppInfo",
    "settings",
    "get_settings",
]
