"""
Registry Payments Configuration Module

Loads environment variables for the gift-registry payment backend.
"""
from pydantic_settings import BaseSettings
from typing import Literal, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Notes:
    - The webhook secret is shared with the payment gateway and is never logged
    - Fee percentage is platform-wide; fee modality is configured per registry
    - Demo mode enables the development confirmation endpoint
    """

    # Demo Configuration
    demo_mode: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Payment Gateway
    payment_webhook_secret: str = ""
    gateway_timeout_seconds: float = 15.0
    pix_expiration_minutes: int = 30

    # Platform fee (0.05 = 5%)
    platform_fee_percentage: float = 0.05

    # Idempotency
    idempotency_ttl_hours: int = 24
    idempotency_cleanup_interval_minutes: int = 60

    # Database
    database_path: str = "./registry_payments.db"
    database_url: Optional[str] = None  # Overrides database_path when set

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def resolved_database_url(self) -> str:
        """Async SQLAlchemy URL, defaulting to a local aiosqlite file."""
        return self.database_url or f"sqlite+aiosqlite:///{self.database_path}"


# Global settings instance
settings = Settings()
