"""Test configuration and fixtures."""

import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENABLE_WORKERS", "false")
os.environ.setdefault("BEARER_TOKEN_SECRET", "test-secret")

from datetime import date, timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402

import jwt  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from darshan.core.config import settings  # noqa: E402
from darshan.core.database import Base, get_db  # noqa: E402
from darshan.models import *  # noqa: E402,F403 - Import all models
from darshan.models import Booking, BookingStatus, PaymentStatus, Temple, UserRole  # noqa: E402
from darshan.realtime.feed import ChangeFeed  # noqa: E402

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def make_token(user_id: str = "visitor-1", roles=(), email=None) -> str:
    """Sign a bearer token the way the auth provider would."""
    payload = {"sub": user_id, "roles": list(roles)}
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.bearer_token_secret, algorithm="HS256")


def auth_header(user_id: str = "visitor-1", roles=()) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, roles)}"}


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def test_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def change_feed():
    return ChangeFeed(queue_size=100)


@pytest_asyncio.fixture(scope="function")
async def test_app(session_factory, change_feed):
    """The real application wired to the test database and a fresh feed."""
    from darshan.main import create_app

    app = create_app()
    app.state.session_factory = session_factory
    app.state.change_feed = change_feed

    # Override database dependency
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def visitor_headers():
    return auth_header("visitor-1")


@pytest.fixture
def other_visitor_headers():
    return auth_header("visitor-2")


@pytest.fixture
def staff_headers():
    return auth_header("staff-1", roles=["temple_staff"])


@pytest.fixture
def responder_headers():
    return auth_header("guard-1", roles=["security"])


@pytest_asyncio.fixture
async def temple(test_session):
    """A seeded temple with known coordinates."""
    temple = Temple(
        slug="somnath",
        name="Somnath Temple",
        city="Veraval",
        capacity=1000,
        latitude=20.888,
        longitude=70.4015,
    )
    test_session.add(temple)
    await test_session.commit()
    return temple


@pytest_asyncio.fixture
async def responders(test_session):
    """Two active responders and one inactive one."""
    test_session.add_all([
        UserRole(user_id="guard-1", role="security"),
        UserRole(user_id="admin-1", role="admin"),
        UserRole(user_id="guard-2", role="security", is_active=False),
    ])
    await test_session.commit()


async def create_booking(
    session,
    temple,
    user_id: str = "visitor-1",
    status: BookingStatus = BookingStatus.CONFIRMED,
) -> Booking:
    """Insert a booking directly, bypassing payment."""
    booking = Booking(
        user_id=user_id,
        temple_id=temple.id,
        booking_date=date.today() + timedelta(days=1),
        time_slot="06:00-08:00",
        visitor_count=2,
        status=status,
        payment_status=PaymentStatus.PAID if status == BookingStatus.CONFIRMED else PaymentStatus.PENDING,
        payment_amount=Decimal("100.00"),
    )
    session.add(booking)
    await session.commit()
    return booking
