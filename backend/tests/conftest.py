"""
Pytest configuration and shared fixtures for the rental order core tests.

Provides an in-memory SQLite ledger DB, an AsyncMock rental backend, a
FastAPI client wired to both, and sample backend payloads.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from datetime import datetime
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from config import settings
from database import Base, get_db
from deps import get_rental_store
from domain.enums import RentalOrderStatus
from middleware.auth import get_session, require_session
from models import (
    ConfirmDepositResult,
    CustomerProfile,
    DriverLicenseRecord,
    RentalOrder,
    Session,
    StoreResult,
)
from services.rental_store import RentalStoreClient

# ── Test Configuration ───────────────────────────────────────────────
# Claims are read without signature checks unless a test sets a secret
settings.jwt_secret = ""
settings.auto_checkin_enabled = True

TEST_TOKEN = "test-bearer-token"
TEST_CUSTOMER_ID = 17
TEST_ORDER_ID = 6


# ── Database Fixtures ────────────────────────────────────────────────


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create an in-memory SQLite database session for each test.

    Uses StaticPool to allow in-memory SQLite with async SQLAlchemy.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session

    await engine.dispose()


# ── Session Fixtures ─────────────────────────────────────────────────


@pytest.fixture
def staff_session() -> Session:
    return Session(token=TEST_TOKEN, user_id=1, role="Staff")


@pytest.fixture
def customer_session() -> Session:
    return Session(token=TEST_TOKEN, user_id=TEST_CUSTOMER_ID, role="Customer")


# ── Sample Backend Payloads ──────────────────────────────────────────


def make_order(
    order_id: int = TEST_ORDER_ID,
    status: RentalOrderStatus = RentalOrderStatus.CONFIRMED,
    customer_id: int = TEST_CUSTOMER_ID,
    **extra,
) -> RentalOrder:
    data = {
        "id": order_id,
        "status": status,
        "customer_id": customer_id,
        "car_id": 3,
        "location_id": 2,
        "order_date": datetime(2024, 5, 1, 10, 0),
        "total": 1_500_000,
        "deposit": 500_000,
    }
    data.update(extra)
    return RentalOrder(**data)


@pytest.fixture
def sample_order() -> RentalOrder:
    return make_order()


# ── Mock Rental Backend ──────────────────────────────────────────────


@pytest.fixture
def mock_store(sample_order: RentalOrder):
    """
    AsyncMock stand-in for RentalStoreClient.

    Defaults describe the happy path: deposit confirmed for order #6,
    order in Confirmed, license approved on the profile.
    """
    store = MagicMock(spec=RentalStoreClient)
    store.confirm_deposit = AsyncMock(
        return_value=ConfirmDepositResult(success=True, order_id=TEST_ORDER_ID, message=None)
    )
    store.confirm_deposit_momo = AsyncMock(
        return_value=ConfirmDepositResult(success=True, order_id=TEST_ORDER_ID, message=None)
    )
    store.get_order = AsyncMock(return_value=sample_order)
    store.update_order_status = AsyncMock(return_value=StoreResult(success=True))
    store.list_orders = AsyncMock(return_value=[])
    store.list_customers = AsyncMock(return_value=[])
    store.get_customer_profile = AsyncMock(
        return_value=CustomerProfile(user_id=TEST_CUSTOMER_ID, driver_license_status=1)
    )
    store.get_current_license = AsyncMock(
        return_value=DriverLicenseRecord(id=9, user_id=TEST_CUSTOMER_ID, status="Pending")
    )
    store.ping = AsyncMock(return_value=True)
    return store


# ── API Client ───────────────────────────────────────────────────────


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, mock_store, customer_session: Session):
    """
    Route-level client: in-memory ledger, mocked backend, fixed caller session.

    The lifespan is not run, so no real backend client is created.
    """
    from main import app
    from middleware.rate_limit import _limiter

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rental_store] = lambda: mock_store
    app.dependency_overrides[get_session] = lambda: customer_session
    app.dependency_overrides[require_session] = lambda: customer_session
    _limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
