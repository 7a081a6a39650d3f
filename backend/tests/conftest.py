"""Pytest configuration and fixtures for growledger tests.

Every test gets a scratch SQLite file (through aiosqlite) holding the full
schema, a Ledger bound to it with a fixed clock, a few seeded records and
an HTTP client whose ledger dependency points at the same database.
"""

from datetime import date, datetime
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from growledger.auth.jwt import create_access_token
from growledger.database import Base
from growledger.main import app
from growledger.models import Environment, Harvest, Patient, Plant
from growledger.schemas.harvest import HarvestCreate
from growledger.schemas.patient import PatientCreate
from growledger.schemas.plant import PlantCreate
from growledger.schemas.scope import AssociationCreate, EnvironmentCreate
from growledger.services.audit import Actor
from growledger.services.ledger import Ledger, get_ledger

FIXED_NOW = datetime(2025, 6, 1, 12, 0, 0)


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Fresh SQLite file per test; separate connections see each other's commits."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def ledger(session_factory) -> Ledger:
    return Ledger(session_factory, clock=lambda: FIXED_NOW)


@pytest.fixture
def actor() -> Actor:
    return Actor(user_id="user-001", email="grower@example.com")


# ── Seed Data Fixtures ───────────────────────────────────────────

@pytest_asyncio.fixture
async def association(ledger: Ledger, actor: Actor):
    return await ledger.create_association(AssociationCreate(name="Green Cross"), actor)


@pytest_asyncio.fixture
async def environment(ledger: Ledger, actor: Actor, association) -> Environment:
    """'Main Tent' → scope tag MT."""
    return await ledger.create_environment(
        EnvironmentCreate(association_id=association.id, name="Main Tent"), actor,
    )


@pytest_asyncio.fixture
async def plant(ledger: Ledger, actor: Actor, environment: Environment) -> Plant:
    return await ledger.create_plant(
        PlantCreate(
            environment_id=environment.id,
            name="Mother #1",
            strain="Cannatonic",
            start_date=date(2025, 1, 10),
        ),
        actor,
    )


@pytest_asyncio.fixture
async def harvest(ledger: Ledger, actor: Actor, plant: Plant) -> Harvest:
    """Fresh harvest, 100g wet."""
    return await ledger.create_harvest(
        HarvestCreate(plant_id=plant.id, harvest_date=date(2025, 5, 20), wet_weight_grams=100),
        actor,
    )


@pytest_asyncio.fixture
async def patient(ledger: Ledger, actor: Actor, association) -> Patient:
    return await ledger.create_patient(
        PatientCreate(
            association_id=association.id,
            name="Maria Souza",
            document_type="cpf",
            document_number="123.456.789-00",
        ),
        actor,
    )


# ── HTTP Client ──────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(ledger: Ledger) -> AsyncGenerator[AsyncClient, None]:
    """Test client whose ledger dependency uses the scratch database."""
    app.dependency_overrides[get_ledger] = lambda: ledger

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def test_token(actor: Actor) -> str:
    return create_access_token(user_id=actor.user_id, email=actor.email)


@pytest.fixture
def auth_headers(test_token: str) -> dict:
    return {"Authorization": f"Bearer {test_token}"}
