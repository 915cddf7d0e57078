"""Configuration via environment variables.

Provides type-safe settings loading using pydantic-settings.
Environment variables can be loaded from a .env file.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables.

    Environment Variables:
        DATABASE_URL: SQLAlchemy connection string
        LOG_LEVEL: Logging level (default INFO)
        LOG_JSON: Emit JSON log lines (default True)
        TENANCY_ENABLED: Initial scoping switch of new tenant managers
        TENANCY_GUARD_MUTATIONS: Reject updates/deletes of hierarchical
            entities that do not belong to the primary tenant
        TENANCY_HEADER_PREFIX: Header prefix read by the default request
            tenant resolver (e.g. "X-Tenant-Org-Id: 1,11")
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite:///./tenancy.db"
    DATABASE_ECHO: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Tenancy
    TENANCY_ENABLED: bool = True
    TENANCY_GUARD_MUTATIONS: bool = False
    TENANCY_HEADER_PREFIX: str = "X-Tenant-"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache for singleton behavior.
    Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
