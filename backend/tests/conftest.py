"""
Pytest fixtures for stores, the service engine, the HTTP client and seeded events.

Service and API tests run on the in-memory store so concurrency scenarios can
fire many coroutines at once. SQL store tests use SQLite through aiosqlite.
"""

import os

# Settings are cached on first use; pin the test environment before any import
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("REDIS_ENABLED", "false")

from datetime import date, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import StaticPool

from ticket_engine.db.session import create_engine
from ticket_engine.domain.models import Event, PromoCode, SeatSection
from ticket_engine.main import create_app
from ticket_engine.services.engine import TicketEngine, build_engine
from ticket_engine.services.event_service import NewEvent
from ticket_engine.services.payments import PaymentConfirmer, PaymentRequest, PaymentResult
from ticket_engine.services.publisher import DomainEvent, Publisher
from ticket_engine.stores.memory_store import MemoryTicketStore
from ticket_engine.stores.sql_store import SqlTicketStore

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class RecordingPublisher(Publisher):
    def __init__(self) -> None:
        self.events: list[DomainEvent] = []

    async def publish(self, event: DomainEvent) -> None:
        self.events.append(event)

    def of_type(self, name: str) -> list[DomainEvent]:
        return [event for event in self.events if event.name == name]


class DecliningConfirmer(PaymentConfirmer):
    async def confirm(self, request: PaymentRequest) -> PaymentResult:
        return PaymentResult(confirmed=False, reason="card_declined")


def new_event(**overrides) -> NewEvent:
    fields = {
        "title": "Test Concert",
        "date": date.today() + timedelta(days=30),
        "location": "Test Venue",
        "organizer_id": "org-1",
        "total_tickets": 100,
        "price": Decimal("5000.00"),
    }
    fields.update(overrides)
    return NewEvent(**fields)


@pytest.fixture
def store() -> MemoryTicketStore:
    return MemoryTicketStore()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def declining_payments() -> DecliningConfirmer:
    return DecliningConfirmer()


@pytest.fixture
def engine(store: MemoryTicketStore, publisher: RecordingPublisher) -> TicketEngine:
    return build_engine(store, publisher=publisher)


@pytest_asyncio.fixture(scope="function")
async def client(engine: TicketEngine) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against an app wired to the in-memory engine."""
    app = create_app(engine=engine)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def test_event(engine: TicketEngine) -> Event:
    """General admission event with 100 tickets at 5000.00."""
    return await engine.events.create(new_event())


@pytest_asyncio.fixture
async def small_event(engine: TicketEngine) -> Event:
    """General admission event with only 10 tickets."""
    return await engine.events.create(new_event(title="Small Room", total_tickets=10))


@pytest_asyncio.fixture
async def seated_event(engine: TicketEngine) -> Event:
    """Section A: 2 rows x 5 seats at 100.00; section B: 1 row x 4 seats at 50.00."""
    return await engine.events.create(
        new_event(
            title="Seated Theatre",
            total_tickets=None,
            price=Decimal("100.00"),
            sections=[
                SeatSection(section_name="A", rows=2, seats_per_row=5, price=Decimal("100.00")),
                SeatSection(section_name="B", rows=1, seats_per_row=4, price=Decimal("50.00")),
            ],
        )
    )


@pytest_asyncio.fixture
async def free_event(engine: TicketEngine) -> Event:
    return await engine.events.create(new_event(title="Free Meetup", total_tickets=5, price=Decimal(0)))


@pytest_asyncio.fixture
async def promo(engine: TicketEngine, test_event: Event) -> PromoCode:
    """SAVE20: 20% off, 5 uses."""
    return await engine.promos.create(
        test_event.id,
        code="SAVE20",
        discount_percentage=Decimal("20"),
        ticket_limit=5,
    )


@pytest_asyncio.fixture(scope="function")
async def sql_store() -> AsyncGenerator[SqlTicketStore, None]:
    """SQL store on a private in-memory SQLite database, schema created per test."""
    db_engine = create_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    sql = SqlTicketStore(db_engine, create_schema=True)
    await sql.initialize()
    yield sql
    await sql.close()


@pytest.fixture
def sql_engine(sql_store: SqlTicketStore, publisher: RecordingPublisher) -> TicketEngine:
    return build_engine(sql_store, publisher=publisher)
