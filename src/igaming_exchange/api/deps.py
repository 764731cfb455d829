"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject database sessions,
the caller's Identity, providers, Redis and configuration. Tests override
the provider and blob-store dependencies with in-process fakes.
"""

from __future__ import annotations

import hmac
import uuid
from collections.abc import AsyncGenerator

import redis.asyncio as aioredis
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from igaming_exchange.config import Settings, get_settings
from igaming_exchange.domain.exceptions import PermissionDeniedError
from igaming_exchange.domain.permissions import Identity
from igaming_exchange.domain.provider_protocol import PaymentProvider, SignatureProvider
from igaming_exchange.infrastructure.database.engine import get_async_session
from igaming_exchange.infrastructure.redis_client import get_redis_or_none
from igaming_exchange.infrastructure.storage import LocalBlobStore
from igaming_exchange.logging_config import bind_actor, get_logger
from igaming_exchange.providers import build_payment_provider, build_signature_provider
from igaming_exchange.services.transaction_service import TransactionOrchestrator
from igaming_exchange.services.user_service import UserService

logger = get_logger(__name__)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for a request."""
    async for session in get_async_session():
        yield session


def get_redis_client() -> aioredis.Redis | None:
    """Provide the Redis client, or None when running without Redis."""
    return get_redis_or_none()


def get_app_settings() -> Settings:
    """Provide the application settings."""
    return get_settings()


async def get_current_identity(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    session: AsyncSession = Depends(get_db_session),
    redis: aioredis.Redis | None = Depends(get_redis_client),
) -> Identity:
    """Resolve the authenticated user forwarded by the identity provider."""
    if not x_user_id:
        raise PermissionDeniedError("Authentication required")
    try:
        user_id = uuid.UUID(x_user_id)
    except ValueError as exc:
        raise PermissionDeniedError("Invalid user id") from exc

    identity = await UserService(session, redis).resolve_identity(user_id)
    bind_actor(str(identity.user_id))
    return identity


def get_webhook_identity(
    x_webhook_secret: str | None = Header(default=None, alias="X-Webhook-Secret"),
    settings: Settings = Depends(get_app_settings),
) -> Identity:
    """Admit a provider callback carrying the shared secret, as the system identity."""
    expected = settings.webhook_secret
    if not expected:
        logger.error("webhook.secret_not_configured")
        raise PermissionDeniedError("Webhook secret is not configured")
    if not x_webhook_secret:
        logger.warning("webhook.missing_secret")
        raise PermissionDeniedError("Missing webhook secret")
    if not hmac.compare_digest(x_webhook_secret.encode(), expected.encode()):
        logger.warning("webhook.invalid_secret")
        raise PermissionDeniedError("Invalid webhook secret")
    return Identity.system()


def get_payment_provider() -> PaymentProvider:
    return build_payment_provider()


def get_signature_provider() -> SignatureProvider:
    return build_signature_provider()


def get_blob_store() -> LocalBlobStore:
    return LocalBlobStore()


async def get_orchestrator(
    session: AsyncSession = Depends(get_db_session),
    payments: PaymentProvider = Depends(get_payment_provider),
    signatures: SignatureProvider = Depends(get_signature_provider),
) -> TransactionOrchestrator:
    """Provide a TransactionOrchestrator bound to the current session."""
    return TransactionOrchestrator(
        session,
        payment_provider=payments,
        signature_provider=signatures,
    )
