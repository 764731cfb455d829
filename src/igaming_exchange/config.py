"""Application configuration via pydantic-settings.

Reads from .env file or environment variables. All settings are validated
at startup — if a setting is malformed, the app fails fast with a clear
error message.

Usage:
    from igaming_exchange.config import get_settings
    settings = get_settings()
    print(settings.database_url)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the iGaming Exchange."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = True
    app_log_level: str = "DEBUG"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_public_url: str = "http://localhost:5173"
    cors_allow_origins: str = "*"

    # --- Database (PostgreSQL) ---
    database_url: str = (
        "postgresql+asyncpg://exchange:exchange_dev"
        "@localhost:5432/igaming_exchange"
    )
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_timeout: int = 30
    db_echo_sql: bool = False

    # --- Redis ---
    redis_url: str = "redis://localhost:6379/0"
    redis_idempotency_ttl_seconds: int = 86400  # 24 hours
    redis_identity_ttl_seconds: int = 900

    # --- Payments (Stripe Checkout) ---
    # In simulation mode checkout URLs and references are fabricated locally.
    payment_simulate: bool = True
    stripe_secret_key: str = ""
    stripe_api_base: str = "https://api.stripe.com/v1"
    payment_currency: str = "usd"
    payment_product_name: str = "iGaming Asset Purchase"
    # Off: completing an escrow is bookkeeping only. On: the provider is
    # instructed to transfer the escrowed amount to the seller.
    escrow_release_transfers: bool = False

    # --- E-signature (DocuSign) ---
    esign_simulate: bool = True
    docusign_integration_key: str = ""
    docusign_secret_key: str = ""
    docusign_user_id: str = ""
    esign_signing_base_url: str = "https://demo.docusign.net/signing"

    # --- Provider callbacks ---
    # Shared secret callers must send as X-Webhook-Secret. Empty refuses all.
    webhook_secret: str = ""

    # --- Outbound HTTP ---
    http_timeout_seconds: float = 15.0
    http_max_attempts: int = 3

    # --- KYC document storage ---
    kyc_storage_root: str = "./var/kyc-documents"
    kyc_max_file_bytes: int = 5 * 1024 * 1024
    kyc_allowed_mime_types: str = "image/jpeg,image/png,application/pdf"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        return [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]

    @property
    def kyc_allowed_mime_type_set(self) -> frozenset[str]:
        return frozenset(
            m.strip().lower() for m in self.kyc_allowed_mime_types.split(",") if m.strip()
        )

    @property
    def docusign_configured(self) -> bool:
        return bool(
            self.docusign_integration_key
            and self.docusign_secret_key
            and self.docusign_user_id
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton of the application settings."""
    return Settings()
