"""
Application configuration management using Pydantic settings.

Every settings group reads its own environment prefix and the shared .env
file, so the same process can be configured from either source.
"""
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from catalog_sync.models.domain import MatchStrategy

SUPPORTED_DATABASE_SCHEMES = ("postgresql", "sqlite")

KNOWN_MATCH_STRATEGIES = tuple(strategy.value for strategy in MatchStrategy)


class DatabaseSettings(BaseSettings):
    """Database configuration with connection pooling"""

    # Core database settings
    database_url: str = Field(
        default="sqlite:///catalog_sync.db", description="Database connection URL"
    )
    database_pool_size: int = Field(default=5, ge=1, description="Connection pool size")
    database_max_overflow: int = Field(default=10, ge=0, description="Maximum overflow connections")
    database_pool_timeout: int = Field(default=30, ge=1, description="Pool connection timeout")
    database_pool_recycle: int = Field(default=3600)

    # Connection settings
    database_echo: bool = Field(default=False)

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure database URL targets a supported backend"""
        if not str(v).startswith(SUPPORTED_DATABASE_SCHEMES):
            raise ValueError(
                "Database URL must be PostgreSQL (postgresql://...) or SQLite (sqlite://...)"
            )
        return v

    def is_sqlite(self) -> bool:
        """Check if the configured backend is SQLite"""
        return self.database_url.startswith("sqlite")

    model_config = SettingsConfigDict(env_prefix="DB_", env_file=".env", extra="ignore")


class SyncSettings(BaseSettings):
    """Synchronization run configuration"""

    sync_enabled: bool = Field(default=True)

    # Chunked upsert
    chunk_size: int = Field(default=30, ge=1, le=10000)
    flush_every: int = Field(default=10, ge=1, le=10000)
    max_chunk_duration_seconds: float = Field(default=300.0, gt=0)
    chunk_pause_seconds: float = Field(default=0.0, ge=0)

    # Provider record handling
    property_prefix: str = Field(default="prop_", min_length=1)
    root_category_slugs: list[str] = Field(default_factory=list)
    excluded_category_ids: list[str] = Field(default_factory=list)
    primary_language: str = Field(default="bg", min_length=2, max_length=5)

    # Category matching
    disabled_match_strategies: list[str] = Field(default_factory=list)

    @field_validator("disabled_match_strategies")
    @classmethod
    def validate_disabled_strategies(cls, v):
        """Only known matching strategies can be disabled"""
        unknown = [name for name in v if name not in KNOWN_MATCH_STRATEGIES]
        if unknown:
            raise ValueError(
                f"Unknown match strategies {unknown}; expected any of {list(KNOWN_MATCH_STRATEGIES)}"
            )
        return v

    @field_validator("excluded_category_ids", "root_category_slugs")
    @classmethod
    def strip_blank_entries(cls, v):
        """Drop empty entries produced by trailing commas in env values"""
        return [item.strip() for item in v if item and item.strip()]

    model_config = SettingsConfigDict(env_prefix="SYNC_", env_file=".env", extra="ignore")


class ProviderSettings(BaseSettings):
    """External catalog provider configuration"""

    provider_name: str = Field(default="default")
    provider_base_url: Optional[str] = Field(default=None)
    provider_timeout_seconds: float = Field(default=30.0, ge=1, le=300)
    provider_max_retries: int = Field(default=2, ge=0, le=5)

    @field_validator("provider_base_url")
    @classmethod
    def validate_base_url(cls, v):
        """Provider base URL must be HTTP(S) when configured"""
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError("Provider base URL must start with http:// or https://")
        return v.rstrip("/") if v else v

    model_config = SettingsConfigDict(env_prefix="PROVIDER_", env_file=".env", extra="ignore")


class MonitoringSettings(BaseSettings):
    """Logging configuration"""

    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")  # json, text

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Validate log format"""
        if v not in ["json", "text"]:
            raise ValueError('Log format must be "json" or "text"')
        return v

    model_config = SettingsConfigDict(
        env_prefix="MONITORING_", env_file=".env", extra="ignore"
    )


class ApplicationSettings(BaseSettings):
    """Main application configuration"""

    # Basic application settings
    app_name: str = Field(default="Catalog Sync")
    app_version: str = Field(default="1.0.0")
    environment: str = Field(default="development")
    debug_mode: bool = Field(default=False)

    # Component settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment name"""
        valid_environments = ["development", "staging", "production"]
        if v not in valid_environments:
            raise ValueError(f"Environment must be one of {valid_environments}")
        return v

    @field_validator("debug_mode")
    @classmethod
    def validate_debug_mode(cls, v, info):
        """Ensure debug mode is disabled in production"""
        environment = info.data.get("environment", "development")
        if environment == "production" and v:
            raise ValueError("Debug mode must be disabled in production")
        return v

    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.environment == "production"

    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.environment == "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> ApplicationSettings:
    """
    Get application settings with caching.
    Uses LRU cache to avoid re-reading environment on every call.
    """
    return ApplicationSettings()


def validate_settings() -> ApplicationSettings:
    """
    Validate all settings and raise helpful errors.
    Call this at application startup to fail fast on configuration errors.

    Returns:
        The validated settings

    Raises:
        ValueError: If a cross-field constraint is violated
    """
    settings = get_settings()

    if settings.sync.flush_every > settings.sync.chunk_size:
        raise ValueError(
            "SYNC_FLUSH_EVERY must not exceed SYNC_CHUNK_SIZE "
            f"({settings.sync.flush_every} > {settings.sync.chunk_size})"
        )

    if settings.is_production() and settings.database.is_sqlite():
        raise ValueError("SQLite is not supported in production; configure DB_DATABASE_URL")

    return settings


def get_environment_info() -> dict:
    """Get current environment information for debugging"""
    settings = get_settings()

    return {
        "app_name": settings.app_name,
        "app_version": settings.app_version,
        "environment": settings.environment,
        "debug_mode": settings.debug_mode,
        "database_backend": "sqlite" if settings.database.is_sqlite() else "postgresql",
        "provider_name": settings.provider.provider_name,
        "provider_configured": bool(settings.provider.provider_base_url),
        "sync": {
            "enabled": settings.sync.sync_enabled,
            "chunk_size": settings.sync.chunk_size,
            "flush_every": settings.sync.flush_every,
            "max_chunk_duration_seconds": settings.sync.max_chunk_duration_seconds,
            "excluded_categories": len(settings.sync.excluded_category_ids),
            "disabled_match_strategies": list(settings.sync.disabled_match_strategies),
        },
        "log_level": settings.monitoring.log_level,
    }


# Export main settings getter for easy importing
__all__ = [
    "ApplicationSettings",
    "DatabaseSettings",
    "MonitoringSettings",
    "ProviderSettings",
    "SyncSettings",
    "get_settings",
    "validate_settings",
    "get_environment_info",
]
