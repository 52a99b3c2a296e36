"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  Each test gets a fresh engine with the
production metadata created on it.
"""

from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from naijamove.config import Settings
from naijamove.domain.enums import (
    VEHICLE_CAPACITY_KG,
    AccountStatus,
    LoadStatus,
    UserRole,
    VehicleType,
)
from naijamove.infrastructure.database import Base
from naijamove.infrastructure.models import UserModel
from naijamove.services.dispatch import DispatchEngine


# ── Test DB (SQLite in-memory) ────────────────────────────────────────

TEST_DB_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        database_url=TEST_DB_URL,
        maintenance_mode=False,
        blocked_ips=[],
        activity_retention=1000,
    )


@pytest_asyncio.fixture
async def engine(db_session, test_settings) -> DispatchEngine:
    return DispatchEngine(db_session, test_settings)


# ── Users ─────────────────────────────────────────────────────────────


async def make_passenger(session, name="Tola Adebayo", wallet="5000", **kw):
    user = UserModel(
        name=name,
        email=kw.pop("email", f"{name.split()[0].lower()}@gmail.com"),
        role=UserRole.PASSENGER,
        wallet_balance=Decimal(wallet),
        status=kw.pop("status", AccountStatus.ACTIVE),
        ip=kw.pop("ip", "102.89.1.10"),
        **kw,
    )
    session.add(user)
    await session.commit()
    return user


async def make_driver(
    session,
    name="Musa Ibrahim",
    vehicle_type=VehicleType.OKADA,
    wallet="12500",
    online=True,
    **kw,
):
    driver = UserModel(
        name=name,
        email=kw.pop("email", f"{name.split()[0].lower()}@naijamove.ng"),
        role=UserRole.DRIVER,
        wallet_balance=Decimal(wallet),
        status=kw.pop("status", AccountStatus.ACTIVE),
        vehicle_type=vehicle_type,
        license_plate=kw.pop("license_plate", "SOK-882-AB"),
        is_online=online,
        rating=4.8,
        total_trips=kw.pop("total_trips", 0),
        vehicle_capacity_kg=VEHICLE_CAPACITY_KG[vehicle_type],
        current_load_kg=0.0,
        load_status=LoadStatus.EMPTY,
        **kw,
    )
    session.add(driver)
    await session.commit()
    return driver


async def make_admin(session, name="Super Admin", role=UserRole.ADMIN):
    admin = UserModel(
        name=name,
        email=f"{name.split()[0].lower()}@naijamove.ng",
        role=role,
        wallet_balance=Decimal("0"),
        status=AccountStatus.ACTIVE,
    )
    session.add(admin)
    await session.commit()
    return admin


@pytest_asyncio.fixture
async def passenger(db_session) -> UserModel:
    return await make_passenger(db_session)


@pytest_asyncio.fixture
async def driver(db_session) -> UserModel:
    return await make_driver(db_session)


@pytest_asyncio.fixture
async def admin(db_session) -> UserModel:
    return await make_admin(db_session)
