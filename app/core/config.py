from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

DEVELOPMENT_JWT_SECRET = "development-secret"


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="sld_env")

    # Database
    database_url: str = Field(
        default_factory=lambda: f"sqlite:///{Path(__file__).resolve().parents[2] / 'data' / 'launches.db'}",
        alias="sld_database_url",
    )

    # Redis (optional shared tier for the stats cache)
    redis_url: Optional[str] = Field(None, alias="sld_redis_url")

    # SpaceX API
    spacex_api_base_url: str = Field("https://api.spacexdata.com", alias="sld_spacex_api_base_url")
    spacex_timeout_seconds: float = Field(30.0, alias="sld_spacex_timeout")

    # Synchronization
    sync_on_startup: bool = Field(True, alias="sld_sync_on_startup")
    sync_max_workers: int = Field(4, ge=1, le=32, alias="sld_sync_max_workers")

    # Statistics
    stats_cache_ttl_seconds: int = Field(86400, alias="sld_stats_cache_ttl")
    stats_timezone: Optional[str] = Field(None, alias="sld_stats_timezone")

    # Security
    jwt_secret: Optional[str] = Field(None, alias="sld_jwt_secret")
    jwt_expiration_minutes: int = Field(60 * 24, alias="sld_jwt_expiration_minutes")
    jwt_issuer: Optional[str] = Field(None, alias="sld_jwt_issuer")
    allowed_origins: str = Field(
        "http://localhost:3000,http://127.0.0.1:3000",
        alias="sld_allowed_origins",
    )

    # Seed accounts created at startup when missing
    admin_email: str = Field("admin@example.com", alias="sld_admin_email")
    admin_password: str = Field("admin123", alias="sld_admin_password")
    user_email: str = Field("user@example.com", alias="sld_user_email")
    user_password: str = Field("user123", alias="sld_user_password")

    # Monitoring & Error Tracking
    sentry_dsn: Optional[str] = Field(None, alias="sld_sentry_dsn")
    log_level: str = Field("INFO", alias="sld_log_level")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment in ("production", "prod")

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment in ("development", "dev", "local")

    @property
    def allows_insecure_defaults(self) -> bool:
        return self.is_development or self.environment == "test"

    @property
    def effective_jwt_secret(self) -> Optional[str]:
        # The well-known fallback is only honoured outside deployed environments
        if self.jwt_secret:
            return self.jwt_secret
        return DEVELOPMENT_JWT_SECRET if self.allows_insecure_defaults else None

    def validate_production_config(self) -> None:
        """Validate that all required production settings are configured."""
        if self.is_production:
            if self.database_url.startswith("sqlite"):
                raise RuntimeError("Production requires PostgreSQL DSN (no SQLite allowed)")
            if not self.jwt_secret:
                raise RuntimeError("Production requires SLD_JWT_SECRET")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "case_sensitive": False,
        "populate_by_name": True,
    }


@lru_cache()
def get_settings() -> Settings:
    settings = Settings()
    try:
        settings.validate_production_config()
    except RuntimeError as e:
        import logging
        logger = logging.getLogger(__name__)
        logger.error(f"Production configuration validation failed: {e}")
        logger.warning("Starting with degraded configuration - some features may not work")
    return settings
