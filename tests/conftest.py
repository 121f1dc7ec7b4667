"""Test fixtures and configuration."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from showroom_bot.conversation.dedup import DedupCache
from showroom_bot.conversation.engine import ConversationEngine
from showroom_bot.conversation.filters import InboundFilter
from showroom_bot.conversation.session import SessionStore
from showroom_bot.leads.memory import InMemoryLeadStore
from showroom_bot.llm.coaching import CoachingService
from showroom_bot.llm.dispatcher import ReplyDispatcher, SerialQueue
from showroom_bot.schemas.inventory import InventorySnapshot, Vehicle
from showroom_bot.schemas.message import InboundMessage
from tests.fakes import START, FakeBackend, FakeClock, FakeTransport


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_redis():
    """Mock Redis client."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock()
    return redis


@pytest.fixture
def sessions(clock):
    return SessionStore(None, history_limit=15, clock=clock)


@pytest.fixture
def dedup():
    return DedupCache(maxsize=500)


@pytest.fixture
def inbound_filter(sessions, dedup):
    return InboundFilter(sessions, dedup, handoff_seconds=30 * 60, started_at=START - 60)


@pytest.fixture
def backend(clock):
    return FakeBackend(clock=clock)


@pytest.fixture
def dispatcher(backend, clock):
    return ReplyDispatcher(
        backend, min_interval=7.0, retry_delays=(5, 10, 20, 30), clock=clock, sleep=clock.sleep
    )


@pytest.fixture
def transport():
    return FakeTransport(names={"919812345678": "Ravi"})


@pytest.fixture
def lead_store():
    return InMemoryLeadStore()


@pytest.fixture
def sample_vehicle():
    return Vehicle(
        model="MERCEDES BENZ GLA 200",
        year="2020",
        price="₹ 29,75,000",
        details="KA 09 · Diesel · 41000 km",
        url="https://www.9thgear.co.in/luxury-used-cars/mercedes-benz-gla-200/101/",
    )


@pytest.fixture
def inventory(clock, sample_vehicle):
    """Inventory view holding one live listing."""
    return SimpleNamespace(snapshot=InventorySnapshot(vehicles=(sample_vehicle,), fetched_at=clock()))


@pytest.fixture
def coaching(lead_store, dispatcher, clock):
    return CoachingService(lead_store, dispatcher, clock=clock)


@pytest.fixture
def engine(sessions, inbound_filter, dispatcher, inventory, lead_store, transport, coaching, clock):
    """Create ConversationEngine wired to fakes; delays use the low end of each range."""
    return ConversationEngine(
        sessions=sessions,
        inbound_filter=inbound_filter,
        queue=SerialQueue("test"),
        dispatcher=dispatcher,
        inventory=inventory,
        lead_store=lead_store,
        transport=transport,
        coaching=coaching,
        fallback_reply="Just a moment, let me check that for you!",
        clock=clock,
        sleep=clock.sleep,
        uniform=lambda low, high: low,
    )


@pytest.fixture
def make_message(clock):
    counter = {"n": 0}

    def _make(body: str, conversation_id: str = "919812345678", **overrides) -> InboundMessage:
        counter["n"] += 1
        fields = {
            "id": f"wamid.{counter['n']}",
            "conversation_id": conversation_id,
            "body": body,
            "origin_timestamp": clock(),
        }
        fields.update(overrides)
        return InboundMessage(**fields)

    return _make
