"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the cleanup scheduler and
the operator scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import os

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()

_ENV_CONFIG = SettingsConfigDict(extra="ignore", populate_by_name=True)


class StoreSettings(BaseSettings):
    """Where credential, list and invite documents are persisted."""

    backend: Literal["sqlite", "dynamodb"] = Field("sqlite", alias="STORE_BACKEND")
    db_path: str = Field("data/listlink.db", alias="STORE_DB_PATH")
    region_name: str = Field("us-east-1", alias="AWS_REGION")
    dynamodb_table_name: Optional[str] = Field(None, alias="DYNAMODB_TABLE_NAME")
    dynamodb_expires_at_index: str = Field(
        "collection-expiresAt-index",
        alias="DYNAMODB_EXPIRES_AT_INDEX",
        description="GSI keyed by (collection, expiresAt) used by cleanup queries.",
    )
    dynamodb_created_at_index: str = Field(
        "collection-createdAt-index",
        alias="DYNAMODB_CREATED_AT_INDEX",
        description="GSI keyed by (collection, createdAt) used by invite retention.",
    )

    model_config = _ENV_CONFIG

    @model_validator(mode="after")
    def _require_table_for_dynamodb(self) -> "StoreSettings":
        if self.backend == "dynamodb" and not self.dynamodb_table_name:
            raise ValueError("DYNAMODB_TABLE_NAME is required when STORE_BACKEND=dynamodb")
        return self


class AlexaSettings(BaseSettings):
    """Account-linking configuration for the voice-assistant client."""

    default_list_id: Optional[str] = Field(None, alias="ALEXA_DEFAULT_LIST_ID")
    skill_id: Optional[str] = Field(None, alias="ALEXA_SKILL_ID")
    client_id: Optional[str] = Field(
        None,
        alias="ALEXA_CLIENT_ID",
        description="Comma-separated allow-list of OAuth client ids. Empty allows any.",
    )
    client_secret: Optional[str] = Field(None, alias="ALEXA_CLIENT_SECRET")
    link_code_ttl_minutes: int = Field(10, alias="ALEXA_LINK_CODE_TTL_MINUTES", gt=0)
    auth_code_ttl_minutes: int = Field(5, alias="ALEXA_AUTH_CODE_TTL_MINUTES", gt=0)
    access_token_ttl_seconds: int = Field(
        3600, alias="ALEXA_ACCESS_TOKEN_TTL_SECONDS", gt=0
    )
    refresh_token_ttl_days: int = Field(30, alias="ALEXA_REFRESH_TOKEN_TTL_DAYS", gt=0)
    access_token_sealing_secret: Optional[str] = Field(
        None,
        alias="ACCESS_TOKEN_SEALING_SECRET",
        description="When set, access tokens are Fernet-sealed instead of plain JSON.",
    )

    model_config = _ENV_CONFIG

    @field_validator(
        "default_list_id",
        "skill_id",
        "client_id",
        "client_secret",
        "access_token_sealing_secret",
        mode="before",
    )
    @classmethod
    def _blank_as_none(cls, value: Optional[str]) -> Optional[str]:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def allowed_client_ids(self) -> tuple[str, ...]:
        """Support providing client ids as a comma-separated string."""
        if not self.client_id:
            return ()
        return tuple(part.strip() for part in self.client_id.split(",") if part.strip())


class MaintenanceSettings(BaseSettings):
    """Expiry cleanup and invite retention policy."""

    cleanup_grace_period_minutes: int = Field(
        5, alias="CLEANUP_GRACE_PERIOD_MINUTES", ge=0
    )
    invite_retention_days: int = Field(30, alias="INVITE_RETENTION_DAYS", ge=0)
    invite_ttl_days: int = Field(7, alias="INVITE_TTL_DAYS", gt=0)
    cleanup_batch_size: int = Field(100, alias="CLEANUP_BATCH_SIZE", gt=0, le=100)
    cleanup_interval_hours: float = Field(24, alias="CLEANUP_INTERVAL_HOURS", gt=0)
    scheduler_enabled: bool = Field(True, alias="CLEANUP_SCHEDULER_ENABLED")
    maintenance_token: Optional[str] = Field(None, alias="MAINTENANCE_TOKEN")

    model_config = _ENV_CONFIG


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    environment: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="APP_LOG_LEVEL")
    store: StoreSettings = Field(default_factory=StoreSettings)
    alexa: AlexaSettings = Field(default_factory=AlexaSettings)
    maintenance: MaintenanceSettings = Field(default_factory=MaintenanceSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AlexaSettings",
    "AppSettings",
    "MaintenanceSettings",
    "StoreSettings",
    "get_settings",
]
