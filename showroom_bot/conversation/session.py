"""Session store — in-memory conversation state persisted to Redis."""

from __future__ import annotations

import time
from typing import Any, Callable, Optional

import redis.asyncio as redis
import structlog

from showroom_bot.config import settings
from showroom_bot.conversation.handoff import HandoffTimer
from showroom_bot.schemas.conversation import HandoffWindow, SessionState, Speaker, Turn

logger = structlog.get_logger()


def connect_redis(url: str) -> Optional[redis.Redis]:
    """Client for session persistence, or None to keep sessions in memory only."""
    if not url:
        logger.warning("redis_disabled_sessions_in_memory_only")
        return None
    return redis.from_url(url, decode_responses=True)


class SessionStore:
    """Owns every conversation's state.

    The in-memory table is authoritative for the lifetime of the process.
    Every mutation is written through to Redis so a restart resumes where it
    left off; Redis failures are logged and never raised to callers.
    """

    def __init__(
        self,
        redis_client: Optional[redis.Redis],
        history_limit: int = settings.history_limit,
        clock: Callable[[], float] = time.time,
        timer: Optional[HandoffTimer] = None,
    ):
        self.redis = redis_client
        self.history_limit = history_limit
        self.clock = clock
        self.timer = timer or HandoffTimer()
        self._sessions: dict[str, SessionState] = {}

    def _key(self, conversation_id: str) -> str:
        return f"session:{conversation_id}"

    # ─── Lookup ──────────────────────────────────────────────────────

    async def get_or_create(self, conversation_id: str) -> SessionState:
        """Return the session, loading it from Redis or creating it on first use."""
        state = self._sessions.get(conversation_id)
        if state is not None:
            return state

        state = await self._load(conversation_id)
        if state is None:
            state = SessionState(conversation_id=conversation_id, last_seen=self.clock())
            self._sessions[conversation_id] = state
            await self._persist(state)
            logger.info("session_created", conversation_id=conversation_id)
            return state

        self._sessions[conversation_id] = state
        # A timer armed before a restart is gone; re-arm it from the saved window.
        if state.handoff.active and state.handoff.until:
            remaining = state.handoff.until - self.clock()
            if remaining > 0:
                self.timer.schedule(conversation_id, remaining, self.reset_handoff)
        return state

    async def get(self, conversation_id: str) -> Optional[SessionState]:
        """Return an existing session without creating one."""
        state = self._sessions.get(conversation_id)
        if state is None:
            state = await self._load(conversation_id)
            if state is not None:
                self._sessions[conversation_id] = state
        return state

    def conversation_ids(self) -> list[str]:
        return list(self._sessions)

    # ─── Mutation ────────────────────────────────────────────────────

    async def update(self, conversation_id: str, **fields: Any) -> SessionState:
        """Merge fields into the session, refresh last_seen and persist."""
        state = await self.get_or_create(conversation_id)
        for key, value in fields.items():
            if key not in SessionState.model_fields:
                raise AttributeError(f"SessionState has no field {key!r}")
            setattr(state, key, value)
        state.last_seen = self.clock()
        await self._persist(state)
        return state

    async def append_turn(self, conversation_id: str, speaker: Speaker, text: str) -> SessionState:
        """Append a turn to history, keeping only the last ``history_limit`` turns."""
        state = await self.get_or_create(conversation_id)
        state.history.append(Turn(speaker=speaker, text=text))
        if len(state.history) > self.history_limit:
            state.history = state.history[-self.history_limit:]
        if speaker == Speaker.CUSTOMER:
            state.messages_count += 1
        state.last_seen = self.clock()
        await self._persist(state)
        return state

    # ─── Handoff ─────────────────────────────────────────────────────

    async def set_handoff(self, conversation_id: str, duration_seconds: float) -> None:
        """Pause automated replies; re-triggering restarts the window."""
        state = await self.get_or_create(conversation_id)
        state.handoff = HandoffWindow(active=True, until=self.clock() + duration_seconds)
        state.last_seen = self.clock()
        self.timer.schedule(conversation_id, duration_seconds, self.reset_handoff)
        await self._persist(state)
        logger.info(
            "handoff_started",
            conversation_id=conversation_id,
            until=state.handoff.until,
        )

    async def is_handed_off(self, conversation_id: str) -> bool:
        """True while a handoff window is open; clears expired windows."""
        state = await self.get(conversation_id)
        if state is None or not state.handoff.active:
            return False
        if state.handoff.until is not None and self.clock() < state.handoff.until:
            return True
        await self.reset_handoff(conversation_id)
        return False

    async def reset_handoff(self, conversation_id: str) -> None:
        """Resume automated replies. Safe to call when no handoff is active."""
        self.timer.cancel(conversation_id)
        state = self._sessions.get(conversation_id)
        if state is None or not state.handoff.active:
            return
        state.handoff = HandoffWindow()
        state.last_seen = self.clock()
        await self._persist(state)
        logger.info("handoff_cleared", conversation_id=conversation_id)

    # ─── Persistence ─────────────────────────────────────────────────

    async def _load(self, conversation_id: str) -> Optional[SessionState]:
        if self.redis is None:
            return None
        try:
            data = await self.redis.get(self._key(conversation_id))
        except Exception as e:
            logger.error("session_load_failed", conversation_id=conversation_id, error=str(e))
            return None
        if not data:
            return None
        try:
            return SessionState.model_validate_json(data)
        except ValueError as e:
            logger.warning("session_corrupt", conversation_id=conversation_id, error=str(e))
            return None

    async def _persist(self, state: SessionState) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.set(self._key(state.conversation_id), state.model_dump_json())
        except Exception as e:
            logger.error(
                "session_persist_failed",
                conversation_id=state.conversation_id,
                error=str(e),
            )
            return
        logger.debug(
            "session_saved",
            conversation_id=state.conversation_id,
            step=state.step.value,
        )
