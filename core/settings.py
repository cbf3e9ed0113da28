from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _truthy(value) -> bool:
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


class ShopdeskSettings(BaseSettings):
    """Centralized application configuration pulled from environment/.env."""

    # Left empty on purpose: session verification fails closed until it is set.
    session_secret: str = Field("", alias="SESSION_SECRET")
    session_ttl_days: int = Field(7, alias="SESSION_TTL_DAYS")
    database_url: Optional[str] = Field(None, alias="DATABASE_URL")
    auto_apply_ddl: bool = Field(True, alias="SHOPDESK_AUTO_APPLY_DDL")
    enforce_alembic_migrations: bool = Field(False, alias="SHOPDESK_ENFORCE_ALEMBIC")
    cookie_secure: bool = Field(False, alias="COOKIE_SECURE")
    super_admin_signup_password: str = Field("", alias="SUPER_ADMIN_SIGNUP_PASSWORD")
    region_manager_signup_password: str = Field("", alias="REGION_MANAGER_SIGNUP_PASSWORD")
    app_url: str = Field("http://localhost:8000", alias="APP_URL")
    login_rate_limit_backend: str = Field("auto", alias="LOGIN_RATE_LIMIT_BACKEND")
    login_rate_limit_redis_url: Optional[str] = Field(None, alias="LOGIN_RATE_LIMIT_REDIS_URL")
    # 'open' (allow when Redis down), 'closed' (block), 'memory' (fallback to in-proc)
    login_rate_limit_redis_policy: str = Field("open", alias="LOGIN_RATE_LIMIT_REDIS_POLICY")
    login_rate_limit_max: int = Field(10, alias="LOGIN_RATE_LIMIT_MAX")
    login_rate_limit_window: int = Field(600, alias="LOGIN_RATE_LIMIT_WINDOW")
    sheets_fetch_timeout: float = Field(10.0, alias="SHEETS_FETCH_TIMEOUT")
    # out-of-band delivery for self-service password resets (mailer or messenger bot)
    password_reset_webhook_url: Optional[str] = Field(None, alias="PASSWORD_RESET_WEBHOOK_URL")
    # Build/meta info
    app_version: str = Field("dev", alias="APP_VERSION")
    git_sha: Optional[str] = Field(None, alias="GIT_SHA")
    build_ts: Optional[str] = Field(None, alias="BUILD_TS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator(
        "session_secret",
        "super_admin_signup_password",
        "region_manager_signup_password",
        mode="before",
    )
    @classmethod
    def _strip_secret(cls, value: str | None) -> str:
        return (value or "").strip()

    @field_validator("database_url", "password_reset_webhook_url", mode="before")
    @classmethod
    def _strip_optional_url(cls, value: str | None) -> Optional[str]:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("app_url", mode="before")
    @classmethod
    def _normalize_app_url(cls, value: str | None) -> str:
        val = (value or "http://localhost:8000").strip()
        return val.rstrip("/") or "http://localhost:8000"

    @field_validator("auto_apply_ddl", mode="before")
    @classmethod
    def _parse_auto_ddl(cls, value) -> bool:
        if isinstance(value, bool):
            return value
        if value is None or value == "":
            return True
        return _truthy(value)

    @field_validator("enforce_alembic_migrations", "cookie_secure", mode="before")
    @classmethod
    def _parse_flag(cls, value) -> bool:
        if isinstance(value, bool):
            return value
        if value is None or value == "":
            return False
        return _truthy(value)

    @field_validator("session_ttl_days", mode="before")
    @classmethod
    def _parse_ttl(cls, value) -> int:
        try:
            days = int(str(value).strip())
        except (TypeError, ValueError):
            return 7
        return days if days > 0 else 7

    @field_validator("login_rate_limit_backend", mode="before")
    @classmethod
    def _normalize_backend(cls, value: str | None) -> str:
        val = (value or "auto").strip().lower()
        if val not in {"auto", "memory", "redis"}:
            return "memory"
        return val

    @field_validator("login_rate_limit_redis_policy", mode="before")
    @classmethod
    def _normalize_redis_policy(cls, value: str | None) -> str:
        val = (value or "open").strip().lower()
        if val not in {"open", "closed", "memory"}:
            return "open"
        return val


@lru_cache(maxsize=1)
def get_settings() -> ShopdeskSettings:
    return ShopdeskSettings()


def reset_settings_cache() -> None:
    """Testing helper to clear cached settings."""
    get_settings.cache_clear()
