"""
Centralized configuration management with Pydantic Settings.
All environment variables are validated and typed.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Checkout API"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = Field(default="development", pattern="^(development|test|staging|production)$")

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Database (postgresql:// is rewritten to postgresql+asyncpg://)
    database_url: str = "postgresql://localhost:5432/checkout"
    database_pool_size: int = 20
    database_max_overflow: int = 10
    database_echo: bool = False

    # Redis (cart store and arq job queue)
    redis_url: Optional[RedisDsn] = None

    # Operator endpoints
    admin_api_key: Optional[str] = Field(default=None, min_length=16)

    # CORS - stored as comma-separated string to avoid JSON parsing issues
    allowed_origins_str: str = Field(default="http://localhost:3000", alias="ALLOWED_ORIGINS")

    @property
    def allowed_origins(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins_str.split(",") if origin.strip()]

    # Stripe (checkout sessions are fetched, never created here)
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_session_prefix: str = "cs_"
    mock_session_prefix: str = "mock_"
    gateway_timeout_seconds: float = 10.0

    # Invoices
    invoices_dir: str = "invoices"
    invoice_seller_name: str = "Vachetta Leather Goods"
    invoice_seller_contact: str = "support@vachetta.com"
    # Pending artifacts older than this are treated as abandoned and re-rendered
    invoice_pending_retry_seconds: float = Field(default=120.0, ge=0)

    # Client polling protocol
    invoice_poll_max_attempts: int = Field(default=12, ge=1)
    invoice_poll_interval_seconds: float = Field(default=5.0, ge=0)

    # Observability
    sentry_dsn: Optional[str] = None
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
