"""Tests for the HTTP surface — Twilio webhook, operator API and health."""

from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from showroom_bot.api.health import router as health_router
from showroom_bot.api.v1.operator import router as operator_router
from showroom_bot.api.webhooks.whatsapp import router as whatsapp_router
from showroom_bot.app_state import build_app_state, build_lead_store
from showroom_bot.config import Settings
from showroom_bot.conversation.filters import FilterDecision
from showroom_bot.leads.memory import InMemoryLeadStore
from showroom_bot.schemas.lead import LeadRecord
from showroom_bot.whatsapp.client import DRY_RUN_HISTORY, DryRunTransport
from tests.fakes import FakeBackend, FakeTransport, StaticInventory

CID = "919812345678"


@pytest.fixture
def config():
    return Settings(lead_store="memory", dedup_path="", redis_url="")


@pytest.fixture
def state(config):
    return build_app_state(
        config,
        transport=FakeTransport(),
        backend=FakeBackend(),
        lead_store=InMemoryLeadStore(),
        inventory_source=StaticInventory(),
        started_at=0.0,
    )


@pytest_asyncio.fixture
async def client(state):
    app = FastAPI()
    app.include_router(whatsapp_router)
    app.include_router(operator_router)
    app.include_router(health_router)
    app.state.bot = state

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c

    state.sessions.timer.cancel_all()
    await state.queue.close()


class TestWhatsAppWebhook:

    @pytest.mark.asyncio
    async def test_inbound_message_is_submitted(self, client, state):
        state.engine.submit = AsyncMock(return_value=FilterDecision.ACCEPTED)

        response = await client.post(
            "/webhook/whatsapp",
            data={
                "From": f"whatsapp:+{CID}",
                "Body": "Is the GLA available?",
                "MessageSid": "SM123",
                "ProfileName": "Ravi",
            },
        )

        assert response.status_code == 200
        (message,) = state.engine.submit.await_args.args
        assert message.id == "SM123"
        assert message.conversation_id == CID
        assert message.body == "Is the GLA available?"
        assert message.display_name == "Ravi"

    @pytest.mark.asyncio
    async def test_malformed_payload_is_acknowledged(self, client, state):
        state.engine.submit = AsyncMock()

        response = await client.post("/webhook/whatsapp", data={"Body": "hi"})

        assert response.status_code == 200
        state.engine.submit.assert_not_awaited()


class TestOperatorApi:

    @pytest.mark.asyncio
    async def test_manual_reply_starts_handoff(self, client, state):
        response = await client.post(
            "/api/v1/operator/messages",
            json={"conversation_id": CID, "text": "Hi Ravi, this is Arjun from the showroom"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "sent"
        assert body["handoff_until"] is not None
        assert state.transport.sent == [(CID, "Hi Ravi, this is Arjun from the showroom")]
        assert await state.sessions.is_handed_off(CID) is True

        detail = (await client.get(f"/api/v1/operator/sessions/{CID}")).json()
        assert detail["history"][-1]["speaker"] == "assistant"

        response = await client.delete(f"/api/v1/operator/handoff/{CID}")
        assert response.json()["status"] == "resumed"
        assert await state.sessions.is_handed_off(CID) is False

    @pytest.mark.asyncio
    async def test_failed_manual_reply_is_bad_gateway(self, client, state):
        from showroom_bot.errors import TransportError

        state.transport.send_message = AsyncMock(side_effect=TransportError("twilio down"))

        response = await client.post(
            "/api/v1/operator/messages", json={"conversation_id": CID, "text": "hello"}
        )

        assert response.status_code == 502
        assert await state.sessions.get(CID) is None

    @pytest.mark.asyncio
    async def test_blank_manual_reply_is_rejected(self, client, state):
        response = await client.post(
            "/api/v1/operator/messages", json={"conversation_id": CID, "text": "   \n"}
        )

        assert response.status_code == 422
        assert state.transport.sent == []
        assert await state.sessions.get(CID) is None

    @pytest.mark.asyncio
    async def test_session_listing_and_missing_session(self, client, state):
        await state.sessions.update(CID, name="Ravi")

        listing = (await client.get("/api/v1/operator/sessions")).json()
        assert listing["total"] == 1
        assert listing["sessions"][0]["name"] == "Ravi"
        assert listing["sessions"][0]["handed_off"] is False

        response = await client.get("/api/v1/operator/sessions/0000")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_leads_filtered_by_status(self, client, state):
        await state.lead_store.create_lead(LeadRecord(phone="911", status="New Lead"))
        await state.lead_store.create_lead(LeadRecord(phone="912", status="Won"))

        body = (await client.get("/api/v1/operator/leads", params={"status": "Won"})).json()

        assert body["total"] == 1
        assert body["leads"][0]["phone"] == "912"


class TestHealth:

    @pytest.mark.asyncio
    async def test_health_reports_components(self, client):
        body = (await client.get("/health")).json()

        assert body["status"] == "ok"
        assert body["inventory"] == {"available": False, "vehicles": 0, "fetched_at": None}
        assert body["lead_store"] == "memory"

    @pytest.mark.asyncio
    async def test_pairing_page_without_code(self, client):
        response = await client.get("/pairing")
        assert "already connected" in response.text

    @pytest.mark.asyncio
    async def test_not_ready_before_startup(self):
        app = FastAPI()
        app.include_router(health_router)

        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
            response = await c.get("/health")

        assert response.status_code == 503


class TestLeadStoreSelection:

    def test_unknown_kind_falls_back_to_memory(self):
        assert isinstance(build_lead_store(Settings(lead_store="carrier-pigeon")), InMemoryLeadStore)


class TestScheduler:

    def test_recurring_jobs_registered(self, state, config):
        from showroom_bot.scheduler import build_scheduler

        scheduler = build_scheduler(state, config)

        jobs = {job.id: job for job in scheduler.get_jobs()}
        assert set(jobs) == {"inventory_refresh", "follow_up_check", "coaching_cycle"}
        assert jobs["follow_up_check"].func == state.follow_ups.run_follow_up_check


class TestDryRunTransport:

    @pytest.mark.asyncio
    async def test_sent_history_is_capped(self):
        transport = DryRunTransport()
        for n in range(DRY_RUN_HISTORY + 20):
            await transport.send_message(CID, f"message {n}")

        assert len(transport.sent) == DRY_RUN_HISTORY
        assert transport.sent[0] == (CID, "message 20")
        assert transport.sent[-1] == (CID, f"message {DRY_RUN_HISTORY + 19}")
