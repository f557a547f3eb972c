"""
Test fixtures for ReBooked backend tests.

Provides:
- In-memory SQLite database for isolated testing
- Async test client with proper session management
- Test data factories for creating test entities
"""
# IMPORTANT: Set environment variables BEFORE any other imports
import os

TEST_JWT_SECRET = "test_jwt_secret_with_enough_length_for_hs256"
TEST_INTERNAL_KEY = "test_internal_key"
# base64 of 32 ASCII bytes, a valid Fernet key
TEST_FERNET_KEY = "MDEyMzQ1Njc4OWFiY2RlZjAxMjM0NTY3ODlhYmNkZWY="

os.environ["JWT_SECRET"] = TEST_JWT_SECRET
os.environ["INTERNAL_API_KEY"] = TEST_INTERNAL_KEY
os.environ["BANKING_ENCRYPTION_KEY"] = TEST_FERNET_KEY
# DB settings required by Settings validation (tests use SQLite in-memory, these are not actually used)
os.environ.setdefault("DB_USER", "test")
os.environ.setdefault("DB_PASSWORD", "test")
os.environ.setdefault("DB_NAME", "test")
os.environ.setdefault("ENVIRONMENT", "development")
# No real gateways in tests: clients are injected with mock transports
for _var in ("BOBPAY_API_URL", "BOBPAY_API_TOKEN", "BOBGO_API_KEY"):
    os.environ.pop(_var, None)

import pytest
from decimal import Decimal
from typing import AsyncGenerator, Dict, Optional

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from rebooked.app.core.auth import create_access_token
from rebooked.app.core.base import Base
from rebooked.app.core.limiter import limiter
from rebooked.app.main import app
from rebooked.app.api.deps import get_session, get_cache
from rebooked.app.models.book import Book
from rebooked.app.models.order import Order
from rebooked.app.models.payment import PaymentTransaction
from rebooked.app.models.user import Profile
import rebooked.app.models.affiliate  # noqa: F401
import rebooked.app.models.banking  # noqa: F401
import rebooked.app.models.wallet  # noqa: F401

# Per-IP limits would trip across tests sharing 127.0.0.1
limiter.enabled = False


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    echo=False,
)

TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class MockCacheService:
    """Mock Redis cache for testing without actual Redis."""

    def __init__(self):
        self._cache = {}

    async def get(self, key: str):
        return self._cache.get(key)

    async def set(self, key: str, value, ttl: int = 300):
        self._cache[key] = value

    async def delete(self, key: str):
        self._cache.pop(key, None)

    def locker_key(self, bounds: Dict[str, float]) -> str:
        return "lockers:{min_lat:.3f}:{max_lat:.3f}:{min_lng:.3f}:{max_lng:.3f}".format(**bounds)

    async def get_lockers(self, bounds):
        return self._cache.get(self.locker_key(bounds))

    async def set_lockers(self, bounds, lockers, ttl: int = 300):
        self._cache[self.locker_key(bounds)] = lockers


def auth_header(user_id: str, email: Optional[str] = None) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, email=email)}"}


INTERNAL_HEADERS = {"X-Internal-Key": TEST_INTERNAL_KEY}


@pytest.fixture(scope="function")
async def test_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh database session for each test.
    Creates all tables before and drops after each test.
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def mock_cache() -> MockCacheService:
    return MockCacheService()


@pytest.fixture
async def client(
    test_session: AsyncSession,
    mock_cache: MockCacheService,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client for testing API endpoints.
    Overrides database and cache dependencies.

    Each API request gets its own session, separate from the
    test_session used for fixtures.
    """
    async def override_get_session():
        async with TestSessionLocal() as session:
            yield session

    async def override_get_cache():
        yield mock_cache

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_cache] = override_get_cache

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# --- Test Data Factories ---

async def _add(session: AsyncSession, obj):
    session.add(obj)
    await session.commit()
    await session.refresh(obj)
    return obj


@pytest.fixture
async def buyer(test_session: AsyncSession) -> Profile:
    return await _add(test_session, Profile(
        id="buyer-0000-0000-0000-000000000001",
        email="buyer@example.com",
        full_name="Test Buyer",
    ))


@pytest.fixture
async def seller(test_session: AsyncSession) -> Profile:
    return await _add(test_session, Profile(
        id="seller-000-0000-0000-000000000001",
        email="seller@example.com",
        full_name="Test Seller",
    ))


@pytest.fixture
async def admin(test_session: AsyncSession) -> Profile:
    return await _add(test_session, Profile(
        id="admin-0000-0000-0000-000000000001",
        email="admin@example.com",
        role="admin",
    ))


@pytest.fixture
async def stranger(test_session: AsyncSession) -> Profile:
    return await _add(test_session, Profile(
        id="other-0000-0000-0000-000000000001",
        email="other@example.com",
    ))


@pytest.fixture
async def book(test_session: AsyncSession, seller: Profile) -> Book:
    return await _add(test_session, Book(
        seller_id=seller.id,
        title="Introduction to Algorithms",
        author="Cormen",
        price=Decimal("250.00"),
        condition="Good",
    ))


@pytest.fixture
async def order(test_session: AsyncSession, buyer: Profile, seller: Profile, book: Book) -> Order:
    return await _add(test_session, Order(
        buyer_id=buyer.id,
        seller_id=seller.id,
        book_id=book.id,
        status="pending",
        total_amount=Decimal("250.00"),
        payment_reference="PAY-REF-001",
    ))


@pytest.fixture
async def payment(test_session: AsyncSession, order: Order) -> PaymentTransaction:
    return await _add(test_session, PaymentTransaction(
        order_id=order.id,
        reference="PAY-REF-001",
        amount=Decimal("250.00"),
        status="success",
        bobpay_response={"id": 98765, "status": "paid"},
    ))
