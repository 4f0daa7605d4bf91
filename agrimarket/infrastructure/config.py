"""Application configuration.

Loads settings from environment variables (or a ``.env`` file) with
development defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Persistence
    order_store_backend: str = Field(
        default="memory",
        description="Where orders live: 'memory' or 'database'",
    )
    database_url: str = "postgresql+asyncpg://agrimarket:agrimarket_dev_password@db:5432/agrimarket"

    # Authentication
    api_key: str = "dev-api-key-change-in-production"

    # Payment subsystem webhooks
    payment_webhook_secret: str = "dev-payment-webhook-secret-change-in-production"
    require_webhook_signature: bool = True
    payment_conflict_retries: int = Field(
        default=3,
        ge=0,
        description="Re-applies of a payment report after losing a write race",
    )

    # Orders
    default_currency: str = "INR"
    default_page_size: int = Field(default=10, ge=1)
    max_page_size: int = Field(default=100, ge=1)

    # Notifications
    notification_inbox_size: int = Field(
        default=200,
        ge=1,
        description="Notifications kept per recipient; the oldest are dropped first",
    )

    # Idempotency
    idempotency_ttl_hours: int = 24

    # Logging
    log_level: str = "INFO"
    log_format: str = Field(default="json", description="'json' or 'console'")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
