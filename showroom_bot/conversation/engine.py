"""Conversation Engine — the main dialog orchestrator.

Takes accepted inbound messages off the serial queue, keeps the session
up to date, writes what it learns to the lead store, asks the LLM for a
reply and delivers it with a human-like delay.
"""

from __future__ import annotations

import asyncio
import random
import time
from typing import Any, Awaitable, Callable, Optional, Protocol

import structlog

from showroom_bot.config import settings
from showroom_bot.conversation.extractors import extract_location, extract_product_interest
from showroom_bot.conversation.filters import FilterDecision, InboundFilter
from showroom_bot.conversation.gazetteers import (
    DEFAULT_GAZETTEER,
    DEFAULT_PRODUCT_TABLE,
    Gazetteer,
    ProductTable,
)
from showroom_bot.conversation.session import SessionStore
from showroom_bot.errors import ReplyGenerationError
from showroom_bot.leads.base import LeadStore
from showroom_bot.leads.locks import LeadLocks
from showroom_bot.llm.coaching import CoachingService
from showroom_bot.llm.dispatcher import ReplyDispatcher, SerialQueue
from showroom_bot.llm.history import prepare_history
from showroom_bot.llm.prompts.persona import build_system_instruction
from showroom_bot.schemas.conversation import ConversationStep, SessionState, Speaker
from showroom_bot.schemas.inventory import InventorySnapshot
from showroom_bot.schemas.lead import LeadField, LeadRecord, LeadStatus, normalize_phone
from showroom_bot.schemas.message import InboundMessage
from showroom_bot.timeutil import format_local
from showroom_bot.whatsapp.base import MessagingTransport

logger = structlog.get_logger()

UNKNOWN_NAME = "Unknown"


class InventoryView(Protocol):
    @property
    def snapshot(self) -> InventorySnapshot: ...


def human_delay(reply: str, uniform: Callable[[float, float], float] = random.uniform) -> float:
    """Seconds to "type" a reply: longer replies take longer."""
    length = len(reply)
    if length < 50:
        return uniform(2.0, 4.0)
    if length < 150:
        return uniform(4.0, 7.0)
    return uniform(6.0, 10.0)


def conversation_outcome(state: SessionState) -> str:
    if state.product_interest and state.location:
        return "Qualified"
    if state.product_interest:
        return "Lead Captured"
    return "Engaged"


def advance_step(state: SessionState) -> ConversationStep:
    """Advisory phase from what is known so far; never moves backwards."""
    if state.product_interest and state.location:
        target = ConversationStep.QUALIFIED
    elif state.product_interest or state.location:
        target = ConversationStep.QUALIFYING
    else:
        target = ConversationStep.ACTIVE
    return max(state.step, target)


class ConversationEngine:
    """Main orchestrator for the sales dialog."""

    def __init__(
        self,
        sessions: SessionStore,
        inbound_filter: InboundFilter,
        queue: SerialQueue,
        dispatcher: ReplyDispatcher,
        inventory: InventoryView,
        lead_store: LeadStore,
        transport: MessagingTransport,
        coaching: Optional[CoachingService] = None,
        lead_locks: Optional[LeadLocks] = None,
        fallback_reply: str = settings.fallback_reply,
        business_name: str = settings.business_name,
        assistant_name: str = settings.assistant_name,
        product_table: ProductTable = DEFAULT_PRODUCT_TABLE,
        gazetteer: Gazetteer = DEFAULT_GAZETTEER,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        uniform: Callable[[float, float], float] = random.uniform,
    ):
        self.sessions = sessions
        self.inbound_filter = inbound_filter
        self.queue = queue
        self.dispatcher = dispatcher
        self.inventory = inventory
        self.lead_store = lead_store
        self.transport = transport
        self.coaching = coaching
        self.lead_locks = lead_locks or LeadLocks()
        self.fallback_reply = fallback_reply
        self.business_name = business_name
        self.assistant_name = assistant_name
        self.product_table = product_table
        self.gazetteer = gazetteer
        self.clock = clock
        self.sleep = sleep
        self.uniform = uniform

    # ─── Public entry points ─────────────────────────────────────────

    async def submit(self, message: InboundMessage) -> FilterDecision:
        """Filter an inbound event on arrival and queue it if accepted."""
        decision = await self.inbound_filter.check(message)
        if decision == FilterDecision.ACCEPTED:
            self.queue.enqueue(lambda: self.handle(message))
        return decision

    async def handle(self, message: InboundMessage) -> Optional[str]:
        """Process one accepted message. Never raises.

        Returns:
            The text sent to the customer, or None when nothing was sent
        """
        try:
            return await self._handle(message)
        except Exception as e:
            logger.exception(
                "message_handling_failed",
                conversation_id=message.conversation_id,
                message_id=message.id,
                error=str(e),
            )
            return None

    # ─── Pipeline ────────────────────────────────────────────────────

    async def _handle(self, message: InboundMessage) -> Optional[str]:
        cid = message.conversation_id
        body = message.body.strip()

        # 1. Operator has taken over: remember what was said, stay silent
        if await self.sessions.is_handed_off(cid):
            await self.sessions.append_turn(cid, Speaker.CUSTOMER, body)
            logger.info("handoff_active_reply_skipped", conversation_id=cid, message_id=message.id)
            return None

        # 2. Session, identity, history
        state = await self.sessions.get_or_create(cid)
        name = await self._resolve_name(message, state)
        phone = state.phone or normalize_phone(cid)
        if name != state.name or phone != state.phone:
            state = await self.sessions.update(cid, name=name, phone=phone)
        state = await self.sessions.append_turn(cid, Speaker.CUSTOMER, body)

        logger.info(
            "message_received",
            conversation_id=cid,
            message_id=message.id,
            name=name,
            text_preview=body[:50],
        )

        # 3-4. Lead store bookkeeping
        await self._record_lead(state, body)

        # 5. Reply
        reply = await self._generate_reply(state, body)
        if not reply:
            return None

        # 6. Deliver like a human would
        delay = human_delay(reply, self.uniform)
        try:
            await self.transport.set_composing(cid)
        except Exception as e:
            logger.debug("composing_indicator_failed", conversation_id=cid, error=str(e))
        await self.sleep(delay)

        try:
            await self.transport.send_message(cid, reply)
        except Exception as e:
            logger.error("reply_send_failed", conversation_id=cid, error=str(e))
            return None

        state = await self.sessions.append_turn(cid, Speaker.ASSISTANT, reply)

        # 7. Bookkeeping after a delivered reply
        step = advance_step(state)
        if step != state.step:
            state = await self.sessions.update(cid, step=step)
        if self.coaching is not None:
            await self.coaching.log_conversation(
                name=state.name or "",
                phone=state.phone or "",
                history=state.history,
                outcome=conversation_outcome(state),
            )

        logger.info(
            "reply_sent",
            conversation_id=cid,
            reply_len=len(reply),
            delay_seconds=round(delay, 2),
            step=step.name,
        )
        return reply

    async def _resolve_name(self, message: InboundMessage, state: SessionState) -> str:
        if message.display_name:
            return message.display_name
        if state.name and state.name != UNKNOWN_NAME:
            return state.name
        try:
            name = await self.transport.get_display_name(message.conversation_id)
        except Exception as e:
            logger.debug("display_name_lookup_failed", conversation_id=message.conversation_id, error=str(e))
            name = None
        return name or UNKNOWN_NAME

    async def _record_lead(self, state: SessionState, body: str) -> None:
        phone = state.phone or normalize_phone(state.conversation_id)
        async with self.lead_locks.for_phone(phone):
            await self._write_lead(state, phone, body)

    async def _write_lead(self, state: SessionState, phone: str, body: str) -> None:
        """Create the lead on first contact, then patch newly learned attributes.

        Each flag is set only after its write succeeded, so a failed write is
        retried on the customer's next message. A successful patch upserts the
        row, so it also counts as the initial lead write.
        """
        cid = state.conversation_id
        name = state.name or UNKNOWN_NAME
        now = self.clock()

        if not state.has_logged:
            record = LeadRecord(
                first_contact=format_local(now),
                name=name,
                phone=phone,
                status=LeadStatus.NEW.value,
                last_active=now,
            )
            try:
                await self.lead_store.create_lead(record)
            except Exception as e:
                logger.error("lead_log_failed", conversation_id=cid, error=str(e))
            else:
                state = await self.sessions.update(cid, has_logged=True)
        else:
            try:
                await self.lead_store.update_field(phone, LeadField.LAST_ACTIVE, now, name=name)
            except Exception as e:
                logger.error("lead_touch_failed", conversation_id=cid, error=str(e))

        interest = extract_product_interest(body, self.product_table)
        if interest and not state.product_interest_logged:
            try:
                await self.lead_store.update_field(phone, LeadField.REQUIREMENT, interest, name=name)
                await self.lead_store.update_field(
                    phone, LeadField.STATUS, LeadStatus.ACTIVE.value, name=name
                )
            except Exception as e:
                logger.error("lead_requirement_failed", conversation_id=cid, error=str(e))
            else:
                state = await self.sessions.update(
                    cid, product_interest=interest, product_interest_logged=True, has_logged=True
                )
                logger.info("product_interest_captured", conversation_id=cid, interest=interest[:50])

        location = extract_location(body, self.gazetteer)
        if location and not state.location_logged:
            try:
                await self.lead_store.update_field(phone, LeadField.LOCATION, location, name=name)
            except Exception as e:
                logger.error("lead_location_failed", conversation_id=cid, error=str(e))
            else:
                await self.sessions.update(
                    cid, location=location, location_logged=True, has_logged=True
                )
                logger.info("location_captured", conversation_id=cid, location=location)

    async def _generate_reply(self, state: SessionState, body: str) -> Optional[str]:
        """Ask the LLM for a reply; fall back to a stall message when it fails."""
        has_prior_reply = any(turn.speaker == Speaker.ASSISTANT for turn in state.history)
        tips = await self.coaching.get_tips() if self.coaching is not None else None
        system_instruction = build_system_instruction(
            self.inventory.snapshot,
            has_prior_reply=has_prior_reply,
            business_name=self.business_name,
            assistant_name=self.assistant_name,
            coaching_tips=tips,
        )
        prepared = prepare_history(state.history, body)

        try:
            reply = await self.dispatcher.generate(
                system_instruction, prepared.turns, prepared.live_message
            )
        except ReplyGenerationError as e:
            logger.warning(
                "reply_fallback_used",
                conversation_id=state.conversation_id,
                error=str(e),
                fallback_enabled=bool(self.fallback_reply),
            )
            return self.fallback_reply or None

        reply = reply.strip()
        if not reply:
            logger.warning("reply_empty", conversation_id=state.conversation_id)
            return self.fallback_reply or None
        return reply
