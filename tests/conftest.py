"""
Shared test fixtures for the hawala ledger.

Provides a throwaway SQLite database per test (writers serialized with
BEGIN IMMEDIATE, same as dev), service instances bound to it, Redis
mocks, and an async HTTP client with the service dependencies overridden.
"""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from cryptography.fernet import Fernet
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hawala.core.security import configure_fernet
from hawala.database import Base, build_engine
from hawala.services.ledger_service import LedgerService
from hawala.services.payout_service import PayoutService
from hawala.services.reconciliation_service import ReconciliationService
from hawala.settlement_engine.engine import SettlementEngine


# --- Fernet Key Fixture ---


@pytest.fixture(scope="session")
def test_fernet_key():
    """Generate a Fernet key for tests."""
    return Fernet.generate_key()


@pytest.fixture(autouse=True)
def setup_fernet(test_fernet_key):
    """Encrypt IBANs with the test key."""
    configure_fernet(test_fernet_key)


# --- Database ---


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Fresh SQLite file database with all tables created."""
    import hawala.models  # noqa: F401

    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'hawala_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


# --- Services ---


@pytest.fixture
def engine(session_factory):
    """SettlementEngine bound to the test database."""
    return SettlementEngine(session_factory=session_factory, max_retries=5)


@pytest.fixture
def ledger(session_factory):
    return LedgerService(session_factory=session_factory)


@pytest.fixture
def payouts(session_factory):
    return PayoutService(session_factory=session_factory)


# --- Identity ---


@pytest.fixture
def tenant_id():
    return uuid.uuid4()


@pytest.fixture
def actor_id():
    return uuid.uuid4()


@pytest.fixture
def branch_id():
    return uuid.uuid4()


@pytest.fixture
def other_branch_id():
    return uuid.uuid4()


@pytest.fixture
def headers(tenant_id, actor_id):
    return {"X-Tenant-ID": str(tenant_id), "X-Actor-ID": str(actor_id)}


# --- Record factories ---


@pytest.fixture
def make_outgoing(engine, tenant_id, actor_id, branch_id):
    """Factory creating an outgoing debt through the engine."""

    async def _make(amount="1000000", rate="85000", **overrides):
        data = {
            "branch_id": branch_id,
            "sender_name": "Reza Karimi",
            "recipient_name": "Maryam Karimi",
            "amount": Decimal(str(amount)),
            "acquisition_rate": Decimal(str(rate)),
        }
        data.update(overrides)
        tenant = data.pop("tenant_id", tenant_id)
        return await engine.create_outgoing(tenant, actor_id, **data)

    return _make


@pytest.fixture
def make_incoming(engine, tenant_id, actor_id, other_branch_id):
    """Factory creating incoming funds through the engine."""

    async def _make(amount="400000", rate="84000", **overrides):
        data = {
            "branch_id": other_branch_id,
            "sender_name": "Omid Rahimi",
            "recipient_name": "Sara Rahimi",
            "amount": Decimal(str(amount)),
            "payout_rate": Decimal(str(rate)),
        }
        data.update(overrides)
        tenant = data.pop("tenant_id", tenant_id)
        return await engine.create_incoming(tenant, actor_id, **data)

    return _make


# --- Mock Redis ---


@pytest.fixture
def mock_redis():
    """AsyncMock Redis client whose lock is always acquirable."""
    redis = AsyncMock()
    lock = MagicMock()
    lock.acquire = AsyncMock(return_value=True)
    lock.release = AsyncMock()
    redis.lock = MagicMock(return_value=lock)
    return redis


@pytest.fixture
def reconciliation(mock_redis, session_factory):
    return ReconciliationService(redis=mock_redis, session_factory=session_factory)


# --- Dependency Override Helpers ---


@pytest_asyncio.fixture
async def client(engine, ledger, payouts, reconciliation, session_factory):
    """
    Async HTTP test client with every service dependency pointed at
    the test database.
    """
    from hawala.api import deps
    from hawala.database import get_db
    from hawala.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[deps.get_engine] = lambda: engine
    app.dependency_overrides[deps.get_ledger_service] = lambda: ledger
    app.dependency_overrides[deps.get_payout_service] = lambda: payouts
    app.dependency_overrides[deps.get_reconciliation_service] = lambda: reconciliation
    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
