"""Coaching loop — learns tips from past conversations.

After each reply a short summary is appended to the conversation log.
Periodically the recent logs are sent to the LLM (through the same
dispatcher as customer replies) which returns coaching tips; the latest
tips are injected into every system instruction.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

import structlog

from showroom_bot.config import settings
from showroom_bot.leads.base import CoachingStore
from showroom_bot.llm.dispatcher import ReplyDispatcher
from showroom_bot.schemas.conversation import Speaker, Turn
from showroom_bot.schemas.lead import ConversationLogEntry
from showroom_bot.timeutil import format_local

logger = structlog.get_logger()

SUMMARY_TURNS = 6
SUMMARY_TURN_CHARS = 120
MAX_LOGS_TO_ANALYSE = 30
MIN_LOGS_FOR_LEARNING = 3
MAX_ACTIVE_TIPS = 15
MIN_TIP_LENGTH = 10
TIP_CACHE_TTL = 2 * 60 * 60

COACH_PROMPT = """You are a sales coach for {business_name}, a luxury pre-owned car showroom in Bangalore.

Below are recent WhatsApp sales conversations between the AI sales agent "{assistant_name}" and potential customers.

Analyse these conversations and extract 5-8 specific, actionable coaching tips that will help {assistant_name}:
- Convert more leads (get them to book a visit or share their contact)
- Handle common objections better
- Avoid conversation drop-offs
- Use language patterns that worked well

Write each tip as a single clear sentence starting with an action verb.
Focus ONLY on things you can observe from the actual conversations below.
Do NOT give generic sales advice, only patterns you actually see.

Format: Return ONLY the tips, one per line, no numbering, no headers."""


def summarize_turns(history: list[Turn]) -> str:
    """"Bot: ... | Customer: ..." over the last few turns."""
    recent = history[-SUMMARY_TURNS:]
    return " | ".join(
        f"{'Bot' if turn.speaker == Speaker.ASSISTANT else 'Customer'}: "
        f"{turn.text[:SUMMARY_TURN_CHARS]}"
        for turn in recent
    )


def parse_tips(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if len(line.strip()) > MIN_TIP_LENGTH]


class CoachingService:
    def __init__(
        self,
        store: CoachingStore,
        dispatcher: ReplyDispatcher,
        business_name: str = settings.business_name,
        assistant_name: str = settings.assistant_name,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.business_name = business_name
        self.assistant_name = assistant_name
        self.clock = clock
        self._tips: list[str] = []
        self._loaded_at: Optional[float] = None

    async def log_conversation(
        self,
        name: str,
        phone: str,
        history: list[Turn],
        outcome: str,
    ) -> None:
        """Append a conversation summary. Never raises."""
        try:
            await self.store.append_conversation_log(
                ConversationLogEntry(
                    date=format_local(self.clock()),
                    name=name,
                    phone=phone,
                    summary=summarize_turns(history),
                    outcome=outcome,
                )
            )
        except Exception as e:
            logger.error("conversation_log_failed", phone=phone, error=str(e))

    async def run_cycle(self) -> list[str]:
        """Analyse recent conversations and store new tips.

        Returns:
            The tips saved this cycle (empty when skipped or failed)
        """
        try:
            logs = await self.store.get_conversation_logs(MAX_LOGS_TO_ANALYSE)
        except Exception as e:
            logger.error("coaching_logs_unavailable", error=str(e))
            return []

        if len(logs) < MIN_LOGS_FOR_LEARNING:
            logger.info("coaching_skipped", logs=len(logs), required=MIN_LOGS_FOR_LEARNING)
            return []

        logs_text = "\n\n---\n\n".join(
            f"Conversation {i} ({entry.date}):\n"
            f"Customer: {entry.name} | Outcome: {entry.outcome}\n"
            f"{entry.summary}"
            for i, entry in enumerate(logs, start=1)
        )
        system = COACH_PROMPT.format(
            business_name=self.business_name, assistant_name=self.assistant_name
        )

        try:
            reply = await self.dispatcher.generate(
                system, [], f"RECENT CONVERSATIONS:\n{logs_text}"
            )
        except Exception as e:
            logger.error("coaching_generation_failed", error=str(e))
            return []

        tips = parse_tips(reply)
        if not tips:
            logger.info("coaching_no_tips")
            return []

        date = format_local(self.clock())
        saved = []
        for tip in tips:
            try:
                await self.store.append_learning_tip(date, tip)
            except Exception as e:
                logger.error("coaching_tip_save_failed", error=str(e))
                break
            saved.append(tip)

        logger.info("coaching_cycle_done", tips=len(saved))
        await self.refresh_tips()
        return saved

    async def refresh_tips(self) -> None:
        try:
            tips = await self.store.get_learning_tips()
        except Exception as e:
            logger.error("coaching_tips_refresh_failed", error=str(e))
            return
        self._tips = tips[-MAX_ACTIVE_TIPS:]
        self._loaded_at = self.clock()
        logger.info("coaching_tips_loaded", tips=len(self._tips))

    async def get_tips(self) -> list[str]:
        """Current tips; reloads when never loaded or older than the cache TTL."""
        if self._loaded_at is None or self.clock() - self._loaded_at > TIP_CACHE_TTL:
            await self.refresh_tips()
        return list(self._tips)
