#!/usr/bin/env python3
"""iGaming Exchange — End-to-End Simulation.

Runs three scenarios with a SellerBot, a BuyerBot and an admin reviewer,
calling the service layer directly (no HTTP):

    Scenario 1: Happy Path
        - Seller lists an online casino, admin approves it
        - Buyer requests access, seller approves, buyer signs the NDA
        - Buyer initiates payment, provider confirms -> escrow FUNDED
        - Purchase agreement created, both parties sign -> agreement COMPLETED
        - Buyer releases funds -> escrow COMPLETED

    Scenario 2: Release Refused Without a Signed Agreement
        - Escrow opened, no agreement yet
        - complete_escrow is refused, escrow stays INITIATED, nobody notified

    Scenario 3: Concurrent Completion
        - Two completions of the same FUNDED escrow race
        - Exactly one wins; the notification pair is emitted once

Payments and e-signature always run against the simulated providers.

Usage:
    # Option A: Against the configured database (PostgreSQL):
    python simulation.py

    # Option B: Without a database server (SQLite file in a temp dir):
    python simulation.py --sqlite

    # Run a specific scenario:
    python simulation.py --sqlite --scenario 3
"""

from __future__ import annotations

import argparse
import asyncio
import tempfile
import uuid
from decimal import Decimal
from pathlib import Path
from typing import Any

# ---------------------------------------------------------------------------
# Configure structured logging BEFORE importing app modules
# ---------------------------------------------------------------------------
from igaming_exchange.logging_config import get_logger, setup_logging

setup_logging(log_level="INFO", json_logs=False)
logger = get_logger("simulation")

from igaming_exchange.domain.enums import AgreementStatus, UserRole  # noqa: E402
from igaming_exchange.domain.exceptions import (  # noqa: E402
    AgreementNotCompletedError,
    EscrowAlreadyCompletedError,
)
from igaming_exchange.domain.permissions import Identity  # noqa: E402
from igaming_exchange.infrastructure.database.orm_models import User  # noqa: E402
from igaming_exchange.infrastructure.database.repositories import (  # noqa: E402
    EscrowRepository,
    NotificationRepository,
)
from igaming_exchange.providers import (  # noqa: E402
    DocuSignDemoProvider,
    SimulatedPaymentProvider,
)
from igaming_exchange.services import (  # noqa: E402
    AccessService,
    ListingService,
    TransactionOrchestrator,
)

# Module-level state
_sqlite_engine = None
_session_factory = None
_tmpdir: tempfile.TemporaryDirectory | None = None


# ---------------------------------------------------------------------------
# Database lifecycle helpers
# ---------------------------------------------------------------------------
async def init_database(use_sqlite: bool = False) -> None:
    """Initialize database engine and create tables."""
    global _sqlite_engine, _session_factory, _tmpdir

    if use_sqlite:
        from sqlalchemy.ext.asyncio import create_async_engine

        from igaming_exchange.infrastructure.database.engine import build_session_factory
        from igaming_exchange.infrastructure.database.orm_models import Base

        # A file, not :memory:, so concurrent sessions get separate connections.
        _tmpdir = tempfile.TemporaryDirectory(prefix="igaming-sim-")
        db_path = Path(_tmpdir.name) / "simulation.db"
        _sqlite_engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", echo=False)
        _session_factory = build_session_factory(_sqlite_engine)
        async with _sqlite_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database.sqlite_initialized", path=str(db_path))
    else:
        from igaming_exchange.infrastructure.database.engine import (
            get_session_factory,
            init_db,
        )

        await init_db()
        _session_factory = get_session_factory()


def get_session() -> Any:
    """Get a fresh database session."""
    return _session_factory()


async def shutdown_database() -> None:
    """Close database connections."""
    global _sqlite_engine, _session_factory, _tmpdir

    if _sqlite_engine is not None:
        await _sqlite_engine.dispose()
        _sqlite_engine = None
        if _tmpdir is not None:
            _tmpdir.cleanup()
            _tmpdir = None
    else:
        from igaming_exchange.infrastructure.database.engine import close_db

        await close_db()
    _session_factory = None


def orchestrator_for(session: Any) -> TransactionOrchestrator:
    return TransactionOrchestrator(
        session,
        payment_provider=SimulatedPaymentProvider(),
        signature_provider=DocuSignDemoProvider(require_credentials=False),
    )


# ---------------------------------------------------------------------------
# Cast
# ---------------------------------------------------------------------------
async def seed_users(session: Any) -> tuple[Identity, Identity, Identity]:
    """Create a seller, a buyer and an admin; return their identities."""
    tag = uuid.uuid4().hex[:6]
    seller = User(
        email=f"seller-{tag}@example.com",
        first_name="Sally",
        last_name="Seller",
        roles=[UserRole.SELLER.value],
        payout_account_id="acct_sim_seller",
    )
    buyer = User(
        email=f"buyer-{tag}@example.com",
        first_name="Bob",
        last_name="Buyer",
        roles=[UserRole.BUYER.value],
    )
    admin = User(email=f"admin-{tag}@example.com", roles=[UserRole.ADMIN.value])
    session.add_all([seller, buyer, admin])
    await session.commit()

    def ident(user: User) -> Identity:
        return Identity(user_id=user.id, roles=frozenset(UserRole(r) for r in user.roles))

    return ident(seller), ident(buyer), ident(admin)


async def published_listing(session: Any, seller: Identity, admin: Identity) -> Any:
    listings = ListingService(session)
    listing = await listings.create_listing(
        seller,
        title="Malta-licensed online casino",
        description="Established brand, 40k monthly actives, MGA B2C licence.",
        price=Decimal("250000.00"),
        revenue_monthly=Decimal("42000.00"),
        category="casino",
        country="Malta",
        license_type="MGA",
        is_public=True,
    )
    await listings.submit_for_review(seller, listing.id)
    await listings.approve_listing(admin, listing.id)
    await session.commit()
    logger.info("🟣 SELLER: Listing approved", listing_id=str(listing.id))
    return listing


async def funded_escrow_with_signed_agreement(
    session: Any,
    seller: Identity,
    buyer: Identity,
    listing: Any,
) -> uuid.UUID:
    """Drive an escrow to FUNDED and its agreement to COMPLETED."""
    orchestrator = orchestrator_for(session)
    url, escrow = await orchestrator.initiate_payment(
        buyer,
        listing_id=listing.id,
        buyer_id=buyer.user_id,
        seller_id=seller.user_id,
        amount=Decimal("250000.00"),
        origin="http://localhost:5173",
    )
    await session.commit()
    logger.info("🔵 BUYER: Checkout opened", escrow_id=str(escrow.id), url=url)

    await orchestrator.confirm_payment(Identity.system(), escrow.id, "pi_sim_confirmed")
    await session.commit()
    logger.info("💳 PROVIDER: Payment confirmed", escrow_id=str(escrow.id))

    agreement = await orchestrator.create_agreement(buyer, listing.id, buyer.user_id)
    await session.commit()
    logger.info("📝 ESIGN: Envelope sent", envelope_id=agreement.envelope_id)

    await orchestrator.record_agreement_status(
        Identity.system(), agreement.id, AgreementStatus.COMPLETED
    )
    await session.commit()
    logger.info("📝 ESIGN: Both parties signed", envelope_id=agreement.envelope_id)
    return escrow.id


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------
def banner(text: str) -> None:
    """Print a prominent banner."""
    width = 70
    print("\n" + "=" * width)
    print(f"  {text}")
    print("=" * width + "\n")


def section(text: str) -> None:
    """Print a section header."""
    print(f"\n--- {text} ---\n")


async def print_mailbox(session: Any, label: str, identity: Identity) -> None:
    notifications = await NotificationRepository(session).list_for_user(identity.user_id)
    print(f"\n  📬 {label} ({len(notifications)} notifications, newest first):")
    for n in notifications:
        print(f"    - [{n.type}] {n.title}: {n.content}")
    print()


# ===========================================================================
# Scenario 1: Happy Path
# ===========================================================================
async def scenario_1_happy_path() -> None:
    banner("SCENARIO 1: Happy Path — Listing to Released Funds")

    async with get_session() as session:
        section("Step 1: Seed users, list and approve the asset")
        seller, buyer, admin = await seed_users(session)
        listing = await published_listing(session, seller, admin)

        section("Step 2: Access request and NDA")
        access = AccessService(session)
        request = await access.request_access(buyer, listing.id, "Interested, please share P&L.")
        await access.approve(seller, request.id)
        await access.sign_nda(buyer, request.id)
        await session.commit()
        print(f"  ✅ NDA signed on request {request.id}")

        section("Step 3: Payment, agreement and signatures")
        escrow_id = await funded_escrow_with_signed_agreement(session, seller, buyer, listing)

        section("Step 4: Buyer releases funds")
        escrow = await orchestrator_for(session).complete_escrow(buyer, escrow_id)
        await session.commit()
        print(f"  ✅ Escrow {escrow.id} is {escrow.status} at {escrow.completed_at}")

        await print_mailbox(session, "Buyer", buyer)
        await print_mailbox(session, "Seller", seller)


# ===========================================================================
# Scenario 2: Release Refused Without a Signed Agreement
# ===========================================================================
async def scenario_2_no_agreement() -> None:
    banner("SCENARIO 2: Release Refused — Agreement Not Signed")

    async with get_session() as session:
        seller, buyer, admin = await seed_users(session)
        listing = await published_listing(session, seller, admin)

        section("Step 1: Buyer opens an escrow")
        orchestrator = orchestrator_for(session)
        _, escrow = await orchestrator.initiate_payment(
            buyer,
            listing_id=listing.id,
            buyer_id=buyer.user_id,
            seller_id=seller.user_id,
            amount=Decimal("250000"),
        )
        await session.commit()

        section("Step 2: Buyer tries to release funds")
        try:
            await orchestrator.complete_escrow(buyer, escrow.id)
        except AgreementNotCompletedError as exc:
            print(f"  ✅ Refused: {exc.message}")

        reloaded = await EscrowRepository(session).get_by_id(escrow.id)
        related = await NotificationRepository(session).list_related(escrow.id)
        completion = [n for n in related if n.type in ("transaction_completed", "payment_received")]
        print(f"  Escrow status: {reloaded.status}")
        print(f"  Completion notifications: {len(completion)}")


# ===========================================================================
# Scenario 3: Concurrent Completion
# ===========================================================================
async def scenario_3_concurrent_completion() -> None:
    banner("SCENARIO 3: Concurrent Completion — Exactly One Winner")

    async with get_session() as session:
        seller, buyer, admin = await seed_users(session)
        listing = await published_listing(session, seller, admin)
        escrow_id = await funded_escrow_with_signed_agreement(session, seller, buyer, listing)

    async def attempt(label: str) -> str:
        async with get_session() as session:
            try:
                await orchestrator_for(session).complete_escrow(buyer, escrow_id)
                await session.commit()
                return f"{label}: completed"
            except EscrowAlreadyCompletedError as exc:
                await session.rollback()
                return f"{label}: refused ({exc.message})"

    section("Two completions race")
    for outcome in await asyncio.gather(attempt("first"), attempt("second")):
        print(f"  {outcome}")

    async with get_session() as session:
        related = await NotificationRepository(session).list_related(escrow_id)
        completion = [n for n in related if n.type in ("transaction_completed", "payment_received")]
        print(f"\n  🛡️  Completion notifications emitted: {len(completion)} (expected 2)")


# ===========================================================================
# Main
# ===========================================================================
SCENARIOS = {
    1: scenario_1_happy_path,
    2: scenario_2_no_agreement,
    3: scenario_3_concurrent_completion,
}


async def run(use_sqlite: bool = False, scenario: int | None = None) -> None:
    await init_database(use_sqlite=use_sqlite)
    try:
        print("\n" + "🎰" * 35)
        print("  iGAMING EXCHANGE — SIMULATION")
        print(f"  Database: {'SQLite (temp file)' if use_sqlite else 'configured DATABASE_URL'}")
        print("🎰" * 35 + "\n")

        selected = [SCENARIOS[scenario]] if scenario else list(SCENARIOS.values())
        for run_scenario in selected:
            await run_scenario()

        print("\n" + "=" * 70)
        print("  ✅ SIMULATION FINISHED")
        print("=" * 70 + "\n")
    finally:
        await shutdown_database()


def main() -> None:
    parser = argparse.ArgumentParser(description="iGaming Exchange simulation")
    parser.add_argument("--sqlite", action="store_true", help="Use a temporary SQLite database")
    parser.add_argument(
        "--scenario",
        type=int,
        choices=sorted(SCENARIOS),
        help="Run a single scenario",
    )
    args = parser.parse_args()
    asyncio.run(run(use_sqlite=args.sqlite, scenario=args.scenario))


if __name__ == "__main__":
    main()
