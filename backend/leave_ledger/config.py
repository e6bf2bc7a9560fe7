from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Leave Ledger"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./leave_ledger.db"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]
    log_level: str = "INFO"
    create_tables_on_startup: bool = False
    db_pool_size: int = 5
    sqlite_busy_timeout_seconds: float = 30.0

    # Roles allowed to grant leave and process requests.
    admin_roles: list[str] = ["admin", "officer"]

    # Balance seeded for a person on first read or first request.
    default_category_name: str = "annual"
    default_entitlement_days: int = 24
    default_placeholder_categories: list[str] = ["reward", "medical"]
    seed_defaults_on_read: bool = True

    balance_cache_ttl_seconds: float = 300.0
    recent_ledger_limit: int = 20

    transaction_max_attempts: int = 5
    transaction_retry_backoff_seconds: float = 0.05


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
