"""Configuration management for the life dashboard service."""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()

DEFAULT_GOOGLE_SCOPES = [
    "https://www.googleapis.com/auth/calendar.readonly",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
]
LOG_LEVELS = ("error", "warn", "info", "debug")


class Settings(BaseModel):
    """Application configuration loaded from environment variables."""

    app_env: str = "dev"
    database_url: str = "sqlite:///./lifedash.db"
    cors_origins: list[str] = Field(default_factory=list)
    version: str = "1.0.0"
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = ""
    google_scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_GOOGLE_SCOPES))
    log_level: str = "info"
    enable_db_logging: bool = True
    token_guard_window_seconds: int = Field(default=300, ge=0)
    google_http_timeout_seconds: float = Field(default=10.0, gt=0)
    store_timeout_seconds: float = Field(default=5.0, gt=0)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            if not value:
                return []
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        if isinstance(value, list):
            return value
        return []

    @field_validator("google_scopes", mode="before")
    @classmethod
    def assemble_google_scopes(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            if not value:
                return list(DEFAULT_GOOGLE_SCOPES)
            return [scope for scope in value.replace(",", " ").split() if scope]
        if isinstance(value, list):
            return value
        return list(DEFAULT_GOOGLE_SCOPES)

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: Any) -> str:
        level = str(value or "info").strip().lower()
        if level == "warning":
            level = "warn"
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level

    @field_validator("enable_db_logging", mode="before")
    @classmethod
    def parse_enable_db_logging(cls, value: Any) -> bool:
        # Only an explicit "false" switches the persistent log sink off.
        if isinstance(value, str):
            return value.strip().lower() != "false"
        return bool(value)

    @property
    def async_database_url(self) -> str:
        if self.database_url.startswith("sqlite+aiosqlite://"):
            return self.database_url
        if self.database_url.startswith("sqlite:///"):
            return self.database_url.replace("sqlite:///", "sqlite+aiosqlite:///")
        if self.database_url.startswith("sqlite://"):
            return self.database_url.replace("sqlite://", "sqlite+aiosqlite://")
        return self.database_url


def _build_settings() -> Settings:
    raw_values: dict[str, Any] = {
        "app_env": os.getenv("APP_ENV"),
        "database_url": os.getenv("DATABASE_URL"),
        "cors_origins": os.getenv("CORS_ORIGINS"),
        "version": os.getenv("APP_VERSION"),
        "google_client_id": os.getenv("GOOGLE_CLIENT_ID"),
        "google_client_secret": os.getenv("GOOGLE_CLIENT_SECRET"),
        "google_redirect_uri": os.getenv("GOOGLE_REDIRECT_URI"),
        "google_scopes": os.getenv("GOOGLE_SCOPES"),
        "log_level": os.getenv("LOG_LEVEL"),
        "enable_db_logging": os.getenv("ENABLE_DB_LOGGING"),
        "token_guard_window_seconds": os.getenv("TOKEN_GUARD_WINDOW_SECONDS"),
        "google_http_timeout_seconds": os.getenv("GOOGLE_HTTP_TIMEOUT_SECONDS"),
        "store_timeout_seconds": os.getenv("STORE_TIMEOUT_SECONDS"),
    }
    filtered_values = {key: value for key, value in raw_values.items() if value is not None}
    return Settings(**filtered_values)


@lru_cache()
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return _build_settings()
