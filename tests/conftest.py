"""
Pytest Configuration and Centralized Fixtures.

Provides reusable fixtures for testing:
- A SQLite-backed ledger with the real unique constraints
- Mock database sessions for storage-fault tests
- Fake verifiers and token providers
- Product catalog and purchase requests
"""

import asyncio
import os
from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID

import pytest
from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

# Set required environment variables BEFORE importing package modules
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ANDROID_PACKAGE_NAME", "com.example.messages")
os.environ.setdefault("APPLE_SHARED_SECRET", "test-shared-secret")
os.environ.setdefault("LOG_FORMAT", "console")

from iap_credits.db.models import Base, FailedTransaction, SuccessfulTransaction, User
from iap_credits.db.session import create_session_factory
from iap_credits.exceptions import VerificationError
from iap_credits.models.api import Platform, PurchaseCreditsRequest
from iap_credits.services.ledger import TransactionLedger
from iap_credits.services.product_catalog import ProductCatalog
from iap_credits.services.purchase import PurchaseService
from iap_credits.services.purchase_verifier import VerifierRegistry

# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """
    File-backed SQLite engine with the full schema.

    BEGIN IMMEDIATE makes concurrent writers queue on the database lock
    instead of failing with "database is locked".
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'purchases.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return create_session_factory(db_engine)


@pytest.fixture
def ledger(session_factory: async_sessionmaker[AsyncSession]) -> TransactionLedger:
    """Ledger over the test database."""
    return TransactionLedger(session_factory)


@pytest.fixture
async def user_id(session_factory: async_sessionmaker[AsyncSession]) -> UUID:
    """A persisted user with an empty balance."""
    async with session_factory() as session:
        user = User(credit_balance=0)
        session.add(user)
        await session.commit()
        return user.id


async def get_balance(session_factory: async_sessionmaker[AsyncSession], user_id: UUID) -> int:
    """Read a user's stored credit balance."""
    async with session_factory() as session:
        user = await session.get(User, user_id)
        assert user is not None
        return user.credit_balance


async def count_successful(
    session_factory: async_sessionmaker[AsyncSession], purchase_token: str | None = None
) -> int:
    """Count successful_transactions rows, optionally for one token."""
    stmt = select(func.count()).select_from(SuccessfulTransaction)
    if purchase_token is not None:
        stmt = stmt.where(SuccessfulTransaction.purchase_token == purchase_token)
    async with session_factory() as session:
        return (await session.execute(stmt)).scalar_one()


async def count_failed(session_factory: async_sessionmaker[AsyncSession]) -> int:
    """Count failed_transactions rows."""
    stmt = select(func.count()).select_from(FailedTransaction)
    async with session_factory() as session:
        return (await session.execute(stmt)).scalar_one()


# ============================================================================
# Mock Session Fixtures
# ============================================================================


@pytest.fixture
def db_session() -> AsyncMock:
    """Create a mock database session with sensible defaults."""
    session = AsyncMock(spec=AsyncSession)

    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()

    mock_result = MagicMock()
    mock_result.scalar_one_or_none = MagicMock(return_value=None)
    session.execute = AsyncMock(return_value=mock_result)

    return session


def mock_session_factory(session: AsyncMock) -> MagicMock:
    """Wrap a mock session so `async with factory() as session` yields it."""
    factory = MagicMock()
    factory.return_value.__aenter__ = AsyncMock(return_value=session)
    factory.return_value.__aexit__ = AsyncMock(return_value=False)
    return factory


def scalar_result(value: Any) -> MagicMock:
    """Mock execute() result whose scalar_one_or_none returns value."""
    result = MagicMock()
    result.scalar_one_or_none = MagicMock(return_value=value)
    return result


# ============================================================================
# Verifier Fixtures
# ============================================================================


class FakeVerifier:
    """Scriptable PurchaseVerifier."""

    def __init__(
        self,
        platform: Platform,
        result: bool = True,
        error: Exception | None = None,
        barrier: asyncio.Barrier | None = None,
    ) -> None:
        self.platform = platform
        self.result = result
        self.error = error
        self.barrier = barrier
        self.calls: list[tuple[str, str]] = []

    async def verify(self, purchase_token: str, product_id: str) -> bool:
        self.calls.append((purchase_token, product_id))
        if self.barrier is not None:
            await self.barrier.wait()
        if self.error is not None:
            raise self.error
        return self.result


class FakeTokenProvider:
    """AccessTokenProvider returning a fixed token or raising."""

    def __init__(self, token: str = "ya29.test-access-token", error: Exception | None = None):
        self.token = token
        self.error = error
        self.calls = 0

    async def get_access_token(self) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.token


@pytest.fixture
def android_verifier() -> FakeVerifier:
    """Android verifier that accepts every purchase."""
    return FakeVerifier(Platform.ANDROID)


@pytest.fixture
def ios_verifier() -> FakeVerifier:
    """iOS verifier that accepts every purchase."""
    return FakeVerifier(Platform.IOS)


@pytest.fixture
def verification_timeout() -> VerificationError:
    """Error a verifier raises when the store times out."""
    return VerificationError("android", "Request timed out after 5.0s")


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def catalog() -> ProductCatalog:
    """Catalog with two products."""
    return ProductCatalog.from_credits({"credits_100": 100, "credits_250": 250})


@pytest.fixture
def purchase_service(
    catalog: ProductCatalog,
    android_verifier: FakeVerifier,
    ios_verifier: FakeVerifier,
    ledger: TransactionLedger,
) -> PurchaseService:
    """Purchase service over fake verifiers and the test database."""
    return PurchaseService(
        catalog=catalog,
        verifiers=VerifierRegistry(android=android_verifier, ios=ios_verifier),
        ledger=ledger,
    )


def make_request(
    purchase_token: str = "tok-123",
    product_id: str = "credits_100",
    platform: str = "android",
) -> PurchaseCreditsRequest:
    """Build an inbound request using wire (camelCase) keys."""
    return PurchaseCreditsRequest.model_validate(
        {"purchaseToken": purchase_token, "productId": product_id, "platform": platform}
    )
