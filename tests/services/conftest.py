"""Service test fixtures - async DB, FastAPI test client and seed factories.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - Route tests go through the real get_db; only db_manager is swapped

Design Decisions:
    - SQLite in-memory with StaticPool: every session shares one connection,
      so data seeded through test_db is visible to request sessions
    - PostgreSQL-only behaviour (FOR UPDATE row locks) is a no-op here; the
      conditional UPDATEs and partial unique indexes behave the same
"""

import itertools

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.pool import StaticPool
from httpx import ASGITransport, AsyncClient

import shelfwise.models  # noqa: F401
from shelfwise.db.base import Base
from shelfwise.infrastructure import database as db_module
from shelfwise.main import create_app
from shelfwise.models.item import Item
from shelfwise.models.patron import Patron


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
async def client(test_engine, test_session_factory, monkeypatch):
    """HTTP client over a fresh app whose sessions come from the test engine.

    The real get_db dependency runs unchanged; only the module-level manager
    is swapped, so readiness probes and error mapping see the same database.
    """
    manager = db_module.DatabaseSessionManager.__new__(db_module.DatabaseSessionManager)
    manager.engine = test_engine
    manager._session_factory = test_session_factory
    monkeypatch.setattr(db_module, "db_manager", manager)

    transport = ASGITransport(app=create_app())
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def make_patron(test_db):
    """Factory: insert and commit a borrowing-eligible patron."""
    counter = itertools.count(1)

    async def _make(barcode: str | None = None, **overrides) -> Patron:
        n = next(counter)
        fields = {
            "barcode": barcode or f"P{n}",
            "firstname": f"First{n}",
            "surname": f"Surname{n}",
            "phone_number": "08030000000",
            "patron_type": "student",
            "gender": "female",
            "active": True,
            "photo_public_id": f"photos/p{n}",
        }
        fields.update(overrides)
        patron = Patron(**fields)
        test_db.add(patron)
        await test_db.commit()
        return patron

    return _make


@pytest.fixture
def make_item(test_db):
    """Factory: insert and commit an available item."""
    counter = itertools.count(1)

    async def _make(barcode: str | None = None, **overrides) -> Item:
        n = next(counter)
        fields = {
            "barcode": barcode or f"B{n}",
            "title": f"Book {n}",
            "available": True,
        }
        fields.update(overrides)
        item = Item(**fields)
        test_db.add(item)
        await test_db.commit()
        return item

    return _make
