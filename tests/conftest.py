"""
Shared test fixtures — async DB, fixed clock, partner tree seeding, API client.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from partner_recovery.config import RecoveryConfig
from partner_recovery.database import Base, get_db, get_session_factory
from partner_recovery.main import app
from partner_recovery.models import (
    Lead,
    Link,
    PartnerContract,
    PartnerProfile,
    PartnerRelation,
    Sale,
    User,
)
from partner_recovery.schemas import ContractStatus, PartnerRole


# ── Test Database (SQLite in-memory) ────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture()
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def client(session_factory):
    """FastAPI test client with test DB injected."""

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Clock & config ──────────────────────────────────────

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FixedClock:
    """Injected clock; only moves when a test advances it."""

    def __init__(self, start: datetime = T0):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def config():
    # tiny chunks so every migration spans several flushes
    return RecoveryConfig(chunk_size=2)


# ── Partner tree seeding ────────────────────────────────

class Seed:
    """Builds partner trees and owned records in the test database."""

    def __init__(self, session):
        self.session = session
        self._n = 0

    def _next(self) -> int:
        self._n += 1
        return self._n

    async def user(self, role: str = "partner") -> User:
        n = self._next()
        user = User(name=f"User {n}", email=f"user{n}@example.com", role=role)
        self.session.add(user)
        await self.session.flush()
        return user

    async def profile(self, role: PartnerRole) -> PartnerProfile:
        user = await self.user()
        profile = PartnerProfile(
            user_id=user.id,
            role=role.value,
            display_name=f"{role.value.title()} {user.id}",
            extra_data={},
        )
        self.session.add(profile)
        await self.session.flush()
        return profile

    async def relate(self, manager: PartnerProfile, agent: PartnerProfile,
                     status: str = "ACTIVE") -> PartnerRelation:
        relation = PartnerRelation(manager_id=manager.id, agent_id=agent.id, status=status, extra_data={})
        self.session.add(relation)
        await self.session.flush()
        return relation

    async def contract(self, profile: PartnerProfile | None, terminated_at: datetime | None = T0,
                       status: str = ContractStatus.TERMINATED.value, **kwargs) -> PartnerContract:
        contract = PartnerContract(
            profile_id=profile.id if profile else None,
            user_id=profile.user_id if profile else None,
            status=status,
            terminated_at=terminated_at,
            **kwargs,
        )
        self.session.add(contract)
        await self.session.flush()
        return contract

    async def leads(self, count: int, manager=None, agent=None) -> list[Lead]:
        rows = [
            Lead(
                manager_id=manager.id if manager else None,
                agent_id=agent.id if agent else None,
                customer_name=f"Customer {self._next()}",
                extra_data={"source": "cruise-fair"},
            )
            for _ in range(count)
        ]
        self.session.add_all(rows)
        await self.session.flush()
        return rows

    async def sale(self, manager=None, agent=None, sales_commission="100",
                   branch_commission="50", override_commission=None) -> Sale:
        sale = Sale(
            manager_id=manager.id if manager else None,
            agent_id=agent.id if agent else None,
            amount=Decimal("1000"),
            sales_commission=Decimal(sales_commission) if sales_commission is not None else None,
            branch_commission=Decimal(branch_commission) if branch_commission is not None else None,
            override_commission=Decimal(override_commission) if override_commission is not None else None,
            extra_data={},
        )
        self.session.add(sale)
        await self.session.flush()
        return sale

    async def links(self, count: int, manager=None, agent=None) -> list[Link]:
        rows = [
            Link(
                manager_id=manager.id if manager else None,
                agent_id=agent.id if agent else None,
                code=f"L{self._next():05d}",
                url="https://example.com/cruise",
                extra_data={},
            )
            for _ in range(count)
        ]
        self.session.add_all(rows)
        await self.session.flush()
        return rows

    async def commit(self) -> None:
        await self.session.commit()


@pytest_asyncio.fixture()
async def seed(db_session):
    return Seed(db_session)


@pytest.fixture
def fetch(session_factory):
    """Read rows back in a fresh session, ordered by id."""

    async def _fetch(model, *where):
        async with session_factory() as session:
            stmt = select(model).where(*where).order_by(model.id)
            return list((await session.execute(stmt)).scalars().all())

    return _fetch


@pytest.fixture
def fetch_one(fetch):
    async def _fetch_one(model, row_id):
        rows = await fetch(model, model.id == row_id)
        return rows[0] if rows else None

    return _fetch_one
