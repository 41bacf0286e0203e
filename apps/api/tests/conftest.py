import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from config import settings
from database import Base, configure_sqlite_engine, get_db
from main import app
from models.customer import Customer
from models.vendor import Vendor
from services.balances import find_balance


VENDOR_ID = "V1"
OTHER_VENDOR_ID = "V2"
CUSTOMER_ID = "C1"


@pytest.fixture(autouse=True)
def default_ledger_policies(monkeypatch):
    """Keep policy settings isolated between tests."""
    monkeypatch.setattr(settings, "OVERSELL_POLICY", "allow")
    monkeypatch.setattr(settings, "MISSING_BALANCE_POLICY", "warn")
    monkeypatch.setattr(settings, "LOW_CREDIT_THRESHOLD", 10)


@pytest_asyncio.fixture
async def ledger_engine(tmp_path):
    db_path = tmp_path / "ledger.db"
    engine = configure_sqlite_engine(create_async_engine(f"sqlite+aiosqlite:///{db_path}"))

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(ledger_engine):
    maker = async_sessionmaker(ledger_engine, class_=AsyncSession, expire_on_commit=False)

    async with maker() as session:
        session.add_all(
            [
                Vendor(vendor_id=VENDOR_ID, name="Vendor One"),
                Vendor(vendor_id=OTHER_VENDOR_ID, name="Vendor Two"),
                Customer(id=CUSTOMER_ID, name="Dana Client", email="dana@example.com"),
            ]
        )
        await session.commit()

    return maker


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def ledger_client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.pop(get_db, None)


async def balance_tuple(db, vendor_id=VENDOR_ID, service_name="Premium"):
    """(remaining, purchased, used) for a vendor service, or None."""
    balance = await find_balance(db, vendor_id, service_name)
    if balance is None:
        return None
    return (balance.remaining_credits, balance.total_purchased, balance.total_used)


@pytest.fixture
def read_balance():
    return balance_tuple
