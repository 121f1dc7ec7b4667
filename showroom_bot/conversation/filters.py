"""Inbound filtering — decides which transport events reach the engine."""

from __future__ import annotations

import time
from enum import Enum

import structlog

from showroom_bot.conversation.dedup import DedupCache
from showroom_bot.conversation.session import SessionStore
from showroom_bot.schemas.message import InboundMessage

logger = structlog.get_logger()


class FilterDecision(str, Enum):
    ACCEPTED = "accepted"
    IGNORED_ORIGIN = "ignored_origin"
    OPERATOR_HANDOFF = "operator_handoff"
    STALE = "stale"
    DUPLICATE = "duplicate"


class InboundFilter:
    """Applies, in order: origin, self-origin, age and duplicate checks.

    Only ACCEPTED events may mutate sessions or reach the LLM. A self-origin
    event (the operator replied by hand) opens a handoff window instead.
    """

    def __init__(
        self,
        sessions: SessionStore,
        dedup: DedupCache,
        handoff_seconds: float,
        started_at: float | None = None,
    ):
        self.sessions = sessions
        self.dedup = dedup
        self.handoff_seconds = handoff_seconds
        self.started_at = time.time() if started_at is None else started_at

    async def check(self, message: InboundMessage) -> FilterDecision:
        if message.is_group or message.is_status or not message.body.strip():
            logger.debug("inbound_ignored_origin", message_id=message.id)
            return FilterDecision.IGNORED_ORIGIN

        if message.sender_is_self:
            logger.info(
                "operator_replied",
                conversation_id=message.conversation_id,
                message_id=message.id,
            )
            await self.sessions.set_handoff(message.conversation_id, self.handoff_seconds)
            return FilterDecision.OPERATOR_HANDOFF

        if message.origin_timestamp < self.started_at:
            logger.info(
                "inbound_stale_skipped",
                message_id=message.id,
                origin_timestamp=message.origin_timestamp,
                started_at=self.started_at,
            )
            return FilterDecision.STALE

        if self.dedup.seen(message.id):
            logger.info("inbound_duplicate_skipped", message_id=message.id)
            return FilterDecision.DUPLICATE

        return FilterDecision.ACCEPTED
