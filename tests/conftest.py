from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from booking.engine import BookingEngine
from booking.rules import BookingRules
from booking.store import InMemoryDocumentStore
from db.session import create_db_engine, create_session_factory, init_db
from db.store import SqlAlchemyDocumentStore

# 07:00 in Bogotá.
FIXED_NOW = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def memory_store(clock):
    return InMemoryDocumentStore(clock=clock)


@pytest.fixture
def db_engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'bookings.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sql_store(db_engine):
    return SqlAlchemyDocumentStore(create_session_factory(db_engine))


@pytest.fixture(params=["memory", "sql"])
def store(request):
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def booking_engine(store, clock):
    return BookingEngine(store, rules=BookingRules(), clock=clock)


@pytest.fixture
def make_booking(booking_engine):
    """Create a booking with sensible resident defaults."""

    def _make(civil_date, start_clock, end_clock, apartment="2-101", full_name="Ana Pérez", plate="ABC-123"):
        return booking_engine.create_booking(apartment, full_name, plate, civil_date, start_clock, end_clock)

    return _make
