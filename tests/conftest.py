"""Shared fixtures: in-memory SQLite database, API client and users."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-the-test-suite-only")

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

import app.models  # noqa: F401
from app.config import settings
from app.core.idempotency import idempotency_store
from app.database import AsyncSessionLocal, Base, engine
from app.main import app
from app.models.service import Service, ServiceInput
from app.models.user import Driver, Guide, User
from tests.factories import auth_headers, make_user


@pytest.fixture(autouse=True)
async def database() -> AsyncGenerator[None, None]:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    idempotency_store.clear()


@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def no_duplicate_window(monkeypatch):
    """Allow several bookings of the same service in one test."""
    monkeypatch.setattr(settings, "duplicate_booking_window_seconds", 0)


@pytest.fixture
async def customer(db: AsyncSession) -> User:
    return await make_user(db, "customer")


@pytest.fixture
async def admin(db: AsyncSession) -> User:
    return await make_user(db, "admin")


@pytest.fixture
def customer_headers(customer: User) -> dict[str, str]:
    return auth_headers(customer)


@pytest.fixture
def admin_headers(admin: User) -> dict[str, str]:
    return auth_headers(admin)


@pytest.fixture
async def driver(db: AsyncSession) -> Driver:
    user = await make_user(db, "driver")
    profile = Driver(
        user_id=user.id,
        full_name="Ivan Petrov",
        phone="+79005550001",
        vehicle_type="Sedan",
        vehicle_number="A123BC",
        status="active",
    )
    db.add(profile)
    await db.commit()
    return profile


@pytest.fixture
async def guide(db: AsyncSession) -> Guide:
    user = await make_user(db, "guide")
    profile = Guide(
        user_id=user.id,
        full_name="Olga Smirnova",
        phone="+79005550002",
        languages=["en", "ru"],
        status="active",
    )
    db.add(profile)
    await db.commit()
    return profile


@pytest.fixture
async def transfer_service(db: AsyncSession) -> Service:
    service = Service(
        service_type="transfer",
        name="Airport Transfer",
        inputs=[
            ServiceInput(key="pickupLocation", label="Pickup Location", is_required=True, sort_order=0),
            ServiceInput(key="pickupDate", label="Pickup Date", input_type="date", is_required=True, sort_order=1),
            ServiceInput(key="passengers", label="Passengers", input_type="number", sort_order=2),
        ],
    )
    db.add(service)
    await db.commit()
    return service
