"""
Pytest configuration and fixtures.
"""

import os
from datetime import datetime, timezone
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from slabline.auth.jwt import create_access_token
from slabline.db import get_db
from slabline.main import app
from slabline.models import Base, CommissionSlab, Lead, LeadStatus, User, UserRole


# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def closed_on(day: int) -> datetime:
    """A closing timestamp in March 2026."""
    return datetime(2026, 3, day, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


# ── Seed data ────────────────────────────────────────────


@pytest_asyncio.fixture
async def statuses(db_session):
    """Pipeline statuses keyed by name, including legacy spellings of 'won'."""
    names = ["New", "Negotiation", "Closed Won", "CLOSED_WON", "won", "Lost"]
    rows = {name: LeadStatus(name=name) for name in names}
    db_session.add_all(rows.values())
    await db_session.flush()
    return rows


@pytest_asyncio.fixture
async def admin(db_session):
    user = User(name="Ada Admin", email="ada@example.com", role=UserRole.ADMIN)
    db_session.add(user)
    await db_session.flush()
    return user


@pytest_asyncio.fixture
async def seller(db_session):
    user = User(name="Sam Seller", email="sam@example.com", role=UserRole.SALES_PERSON)
    db_session.add(user)
    await db_session.flush()
    return user


@pytest_asyncio.fixture
async def seller_slabs(db_session, seller):
    """[0, 5000) @ 5% and [5000, inf) @ 8%."""
    slabs = [
        CommissionSlab(user_id=seller.id, min_amount=Decimal("0"), max_amount=Decimal("5000"), rate=Decimal("5")),
        CommissionSlab(user_id=seller.id, min_amount=Decimal("5000"), max_amount=None, rate=Decimal("8")),
    ]
    db_session.add_all(slabs)
    await db_session.flush()
    return slabs


@pytest_asyncio.fixture
async def seller_deals(db_session, seller, statuses):
    """Two closed deals (3000 and 8000) plus one open lead that must be ignored."""
    small = Lead(
        name="Small Co deal",
        email="buyer@small.example",
        company="Small Co",
        estimated_value=Decimal("3000"),
        status_id=statuses["Closed Won"].id,
        owner_id=seller.id,
        closed_at=closed_on(5),
    )
    large = Lead(
        name="Large Co deal",
        email="buyer@large.example",
        company="Large Co",
        estimated_value=Decimal("8000"),
        status_id=statuses["CLOSED_WON"].id,
        owner_id=seller.id,
        closed_at=closed_on(20),
    )
    pending = Lead(
        name="Pending deal",
        estimated_value=Decimal("50000"),
        status_id=statuses["Negotiation"].id,
        owner_id=seller.id,
    )
    db_session.add_all([small, large, pending])
    await db_session.flush()
    return {"small": small, "large": large, "pending": pending}


# ── HTTP client ──────────────────────────────────────────


@pytest_asyncio.fixture
async def client(db_session):
    """API client bound to the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)

    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def admin_headers(admin):
    token = create_access_token(admin.id, admin.role.value)
    return {"Authorization": f"Bearer {token}"}
