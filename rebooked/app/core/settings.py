"""
Application settings with validation using pydantic-settings.
Validates all required environment variables at startup.
"""
import socket
from decimal import Decimal
from urllib.parse import quote_plus
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _resolve_db_host(host: str) -> str:
    """Resolve DB host to IP so asyncpg avoids getaddrinfo in asyncio context (e.g. in Docker)."""
    if not host or host in ("localhost", "127.0.0.1"):
        return host
    try:
        return socket.gethostbyname(host)
    except socket.gaierror:
        return host


class Settings(BaseSettings):
    """Application settings with validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database configuration
    DB_USER: str = Field(..., description="PostgreSQL username")
    DB_PASSWORD: str = Field(..., description="PostgreSQL password")
    DB_NAME: str = Field(..., description="PostgreSQL database name")
    DB_HOST: str = Field(default="localhost", description="PostgreSQL host")
    DB_PORT: str = Field(default="5432", description="PostgreSQL port")

    # Database pool configuration
    DB_POOL_SIZE: int = Field(default=20, description="Database connection pool size")
    DB_MAX_OVERFLOW: int = Field(default=40, description="Database max overflow connections")
    DB_POOL_RECYCLE: int = Field(default=3600, description="Database connection recycle time (seconds)")

    # Redis configuration
    REDIS_HOST: str = Field(default="localhost", description="Redis host")
    REDIS_PORT: int = Field(default=6379, description="Redis port")
    REDIS_DB: int = Field(default=0, description="Redis database number")

    # Security configuration
    JWT_SECRET: Optional[str] = Field(default=None, description="HS256 secret used to verify user access tokens")
    JWT_AUDIENCE: Optional[str] = Field(default="authenticated", description="Expected 'aud' claim of access tokens")
    INTERNAL_API_KEY: Optional[str] = Field(default=None, description="Service key for internal/admin endpoints")
    BANKING_ENCRYPTION_KEY: Optional[str] = Field(default=None, description="Fernet key for bank account numbers")

    # CORS configuration
    ALLOWED_ORIGINS: str = Field(default="", description="Comma-separated list of allowed CORS origins")

    # Environment
    ENVIRONMENT: str = Field(default="production", description="Environment: development or production")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    # BobPay payment gateway
    BOBPAY_API_URL: Optional[str] = Field(default=None, description="BobPay API base URL (without /v2)")
    BOBPAY_API_TOKEN: Optional[str] = Field(default=None, description="BobPay API bearer token")

    # BobGo logistics / lockers
    BOBGO_API_URL: str = Field(default="https://api.bobgo.co.za/v2", description="BobGo API base URL")
    BOBGO_API_KEY: Optional[str] = Field(default=None, description="BobGo API key")

    # Marketplace rules
    PLATFORM_COMMISSION_PERCENT: Decimal = Field(default=Decimal("10"), description="Commission kept on each sale")
    AFFILIATE_EARNING_AMOUNT: Decimal = Field(default=Decimal("10.00"), description="Flat affiliate earning per sale (ZAR)")
    MIN_PAYOUT_AMOUNT: int = Field(default=100, description="Minimum payout request in whole rands")
    LOCKER_SEARCH_RADIUS_KM: float = Field(default=5.0, description="Default locker search radius")
    LOCKER_CACHE_TTL: int = Field(default=300, description="Locker search cache TTL (seconds)")

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        if v not in ("development", "production"):
            raise ValueError("ENVIRONMENT must be 'development' or 'production'")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator("PLATFORM_COMMISSION_PERCENT")
    @classmethod
    def validate_commission(cls, v: Decimal) -> Decimal:
        if v < 0 or v > 100:
            raise ValueError("PLATFORM_COMMISSION_PERCENT must be between 0 and 100")
        return v

    def validate_production_settings(self) -> list[str]:
        """
        Validate that all required settings are present in production.
        Returns list of missing settings.
        """
        errors = []

        if self.ENVIRONMENT == "production":
            if not self.JWT_SECRET:
                errors.append("JWT_SECRET is required in production")
            if not self.INTERNAL_API_KEY:
                errors.append("INTERNAL_API_KEY is required in production")
            if not self.BANKING_ENCRYPTION_KEY:
                errors.append("BANKING_ENCRYPTION_KEY is required in production")
            if not self.ALLOWED_ORIGINS:
                errors.append("ALLOWED_ORIGINS is required in production")

        return errors

    @property
    def db_url(self) -> str:
        """Get database URL. Resolve host to IP so connections work in Docker/async context."""
        host = _resolve_db_host(self.DB_HOST)
        password = quote_plus(self.DB_PASSWORD)
        return f"postgresql+asyncpg://{self.DB_USER}:{password}@{host}:{self.DB_PORT}/{self.DB_NAME}"

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.ENVIRONMENT == "production"

    @property
    def bobpay_configured(self) -> bool:
        return bool(self.BOBPAY_API_URL and self.BOBPAY_API_TOKEN)

    @property
    def allowed_origins_list(self) -> list[str]:
        """Get list of allowed CORS origins."""
        if not self.ALLOWED_ORIGINS:
            return []
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get application settings (singleton)."""
    global _settings
    if _settings is None:
        _settings = Settings()
        errors = _settings.validate_production_settings()
        if errors:
            error_msg = "Configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            raise ValueError(error_msg)
    return _settings
