"""Shared test fixtures for the iGaming Exchange test suite.

Provides:
    - A file-backed SQLite database per test (aiosqlite), so separate
      sessions really are separate connections
    - Seeded users (seller, buyer, admin) and their Identity objects
    - An approved, public listing owned by the seller
    - Recording providers and an in-memory Redis stand-in
    - An httpx client bound to the FastAPI app with dependency overrides
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from igaming_exchange.config import Settings
from igaming_exchange.domain.enums import ListingStatus, UserRole
from igaming_exchange.infrastructure.database.engine import build_session_factory
from igaming_exchange.infrastructure.database.orm_models import Base, Listing, User
from igaming_exchange.infrastructure.storage import LocalBlobStore
from igaming_exchange.providers import DocuSignDemoProvider, SimulatedPaymentProvider
from igaming_exchange.services.user_service import identity_from_user

if TYPE_CHECKING:
    from igaming_exchange.domain.permissions import Identity

WEBHOOK_SECRET = "whsec_test_shared"


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class RecordingPaymentProvider(SimulatedPaymentProvider):
    """Simulated provider that remembers what it was asked to do."""

    def __init__(self) -> None:
        super().__init__()
        self.customers: list[str] = []
        self.checkouts: list[Any] = []
        self.releases: list[dict[str, Any]] = []

    async def create_customer(self, email: str, name: str) -> str:
        self.customers.append(email)
        return await super().create_customer(email, name)

    async def create_checkout_session(self, request):
        self.checkouts.append(request)
        return await super().create_checkout_session(request)

    async def release_funds(self, escrow_id, amount, currency, destination):
        self.releases.append(
            {
                "escrow_id": escrow_id,
                "amount": amount,
                "currency": currency,
                "destination": destination,
            }
        )
        return await super().release_funds(escrow_id, amount, currency, destination)


class FakeRedis:
    """Just enough of redis.asyncio.Redis for idempotency keys and the identity cache."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None, nx: bool = False) -> bool:
        if nx and key in self.store:
            return False
        self.store[key] = value
        return True

    async def delete(self, key: str) -> int:
        return 1 if self.store.pop(key, None) is not None else 0


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'exchange.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings() -> Settings:
    return Settings(
        payment_simulate=True,
        esign_simulate=True,
        escrow_release_transfers=False,
        app_public_url="http://localhost:5173",
        webhook_secret=WEBHOOK_SECRET,
    )


# ---------------------------------------------------------------------------
# Users and listings
# ---------------------------------------------------------------------------


async def _add_user(session, roles: list[UserRole], **fields: Any) -> User:
    tag = uuid.uuid4().hex[:8]
    user = User(
        email=fields.pop("email", f"user-{tag}@example.com"),
        roles=[r.value for r in roles],
        **fields,
    )
    session.add(user)
    await session.commit()
    return user


@pytest.fixture
async def seller(session) -> User:
    return await _add_user(
        session,
        [UserRole.SELLER],
        first_name="Sally",
        last_name="Seller",
        payout_account_id="acct_seller_123",
    )


@pytest.fixture
async def buyer(session) -> User:
    return await _add_user(session, [UserRole.BUYER], first_name="Bob", last_name="Buyer")


@pytest.fixture
async def other_buyer(session) -> User:
    return await _add_user(session, [UserRole.BUYER], first_name="Olive")


@pytest.fixture
async def admin(session) -> User:
    return await _add_user(session, [UserRole.ADMIN], email="admin@example.com")


@pytest.fixture
def seller_identity(seller: User) -> Identity:
    return identity_from_user(seller)


@pytest.fixture
def buyer_identity(buyer: User) -> Identity:
    return identity_from_user(buyer)


@pytest.fixture
def other_buyer_identity(other_buyer: User) -> Identity:
    return identity_from_user(other_buyer)


@pytest.fixture
def admin_identity(admin: User) -> Identity:
    return identity_from_user(admin)


@pytest.fixture
def make_identity(session):
    """Factory: a fresh user with the given roles, returned as an Identity."""

    async def _make(*roles: UserRole) -> Identity:
        return identity_from_user(await _add_user(session, list(roles)))

    return _make


@pytest.fixture
def make_listing(session, seller: User):
    """Factory: insert a listing directly, bypassing the review workflow."""

    async def _make(**fields: Any) -> Listing:
        values: dict[str, Any] = {
            "seller_id": seller.id,
            "title": "Curacao sportsbook",
            "description": "Licensed sportsbook with 12k monthly actives",
            "price": Decimal("150000.00"),
            "category": "sportsbook",
            "country": "Curacao",
            "status": ListingStatus.APPROVED.value,
            "is_public": True,
        }
        values.update(fields)
        listing = Listing(**values)
        session.add(listing)
        await session.commit()
        return listing

    return _make


@pytest.fixture
async def listing(make_listing) -> Listing:
    return await make_listing()


# ---------------------------------------------------------------------------
# Providers and stores
# ---------------------------------------------------------------------------


@pytest.fixture
def payments() -> RecordingPaymentProvider:
    return RecordingPaymentProvider()


@pytest.fixture
def signatures() -> DocuSignDemoProvider:
    return DocuSignDemoProvider(require_credentials=False)


@pytest.fixture
def blob_store(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "blobs")


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest.fixture
def app(session_factory, settings, payments, signatures, blob_store):
    from igaming_exchange.api import deps
    from igaming_exchange.main import create_app

    app = create_app()

    async def _session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[deps.get_db_session] = _session
    app.dependency_overrides[deps.get_app_settings] = lambda: settings
    app.dependency_overrides[deps.get_redis_client] = lambda: None
    app.dependency_overrides[deps.get_payment_provider] = lambda: payments
    app.dependency_overrides[deps.get_signature_provider] = lambda: signatures
    app.dependency_overrides[deps.get_blob_store] = lambda: blob_store
    return app


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
def webhook_headers() -> dict[str, str]:
    return {"X-Webhook-Secret": WEBHOOK_SECRET}


def auth(user: User) -> dict[str, str]:
    return {"X-User-Id": str(user.id)}


@pytest.fixture
def auth_headers():
    return auth
