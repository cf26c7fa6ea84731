"""Shared test infrastructure for the freight marketplace test suite.

Provides:
- db_session: async SQLite in-memory session with all tables created
- repo: MarketRepository over db_session
- events / publisher: an isolated Publisher whose only sink records events
- make_user: factory for User rows
- make_shipment: factory that posts a shipment through the store
- client: HTTPX AsyncClient against the app, wired to db_session and publisher
- login: helper returning auth headers for a demo session
"""

from datetime import date

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Import Base first, then models to register all tables
from freight_market.infra.database import Base

import freight_market.domain.models  # noqa: F401

from freight_market.domain.enums import IdPrefix, UserRole
from freight_market.domain.models import User, utcnow
from freight_market.domain.schemas import ShipmentCreate
from freight_market.infra.repository import MarketRepository
from freight_market.services import shipment_store
from freight_market.services.identity import next_id
from freight_market.services.publisher import Publisher


# ---------------------------------------------------------------------------
# Database session fixture
# ---------------------------------------------------------------------------

@pytest.fixture
async def db_session():
    """Async SQLite in-memory session with all tables created.

    Creates a fresh engine + tables for each test, yields a session,
    then rolls back and tears down.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def repo(db_session):
    return MarketRepository(db_session)


# ---------------------------------------------------------------------------
# Event capture
# ---------------------------------------------------------------------------

class RecordingSink:
    """Room-capable sink that keeps every delivered (rooms, envelope) pair."""

    supports_rooms = True

    def __init__(self):
        self.delivered: list[tuple[list[str], dict]] = []

    def deliver(self, rooms, message):
        self.delivered.append((list(rooms), message))

    def of_type(self, event: str) -> list[dict]:
        return [message["data"] for _, message in self.delivered if message["type"] == event]

    def rooms_for(self, event: str) -> list[list[str]]:
        return [rooms for rooms, message in self.delivered if message["type"] == event]


@pytest.fixture
def events():
    return RecordingSink()


@pytest.fixture
def publisher(events):
    return Publisher([events])


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_user(repo):
    """Factory that creates a User row.

    Usage:
        shipper = await make_user(role="shipper", name="Acme")
    """
    async def _factory(
        role: str = UserRole.SHIPPER.value,
        name: str = "Test User",
        email: str = "user@test.local",
        verified: bool = True,
        banned: bool = False,
        insurance: str | None = None,
    ) -> User:
        user = User(
            id=await next_id(repo, IdPrefix.USER),
            name=name,
            email=email,
            role=role,
            verified=verified,
            banned=banned,
            insurance=insurance,
            created_at=utcnow(),
        )
        repo.add(user)
        await repo.flush()
        await repo.commit()
        return user

    return _factory


@pytest.fixture
def make_shipment(repo, publisher):
    """Factory that posts an OPEN shipment through the shipment store.

    Usage:
        shipment = await make_shipment(pickup="London", dropoff="Paris")
    """
    async def _factory(
        pickup: str = "London, UK",
        dropoff: str = "Paris, FR",
        title: str = "Pallets",
        service: str = "pallet",
        adr: bool = False,
        ready_date: date | None = None,
        **extra,
    ):
        data = ShipmentCreate(
            title=title,
            pickup=pickup,
            dropoff=dropoff,
            service=service,
            adr=adr,
            ready_date=ready_date,
            **extra,
        )
        return await shipment_store.create_shipment(repo, data, publisher=publisher)

    return _factory


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------

@pytest.fixture
async def client(db_session, publisher):
    """HTTPX AsyncClient against the full app, using the test session and publisher."""
    from freight_market.app.main import app
    from freight_market.infra.database import get_db
    from freight_market.services.publisher import get_publisher

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_publisher] = lambda: publisher

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    """Sign in through the demo-login endpoint; returns Authorization headers.

    Usage:
        headers = await login("transporter", user_id=t.id)
    """
    async def _login(role: str, user_id: str | None = None) -> dict:
        body = {"role": role}
        if user_id:
            body["userId"] = user_id
        resp = await client.post("/auth/demo-login", json=body)
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['token']}"}

    return _login
