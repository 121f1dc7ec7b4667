"""Schedule-and-cancel timers for human handoff windows.

Timers live only as long as the process does. The session store re-checks
expiry lazily on every read, so a lost timer (restart) never leaves a
conversation paused forever.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import structlog

logger = structlog.get_logger()


class HandoffTimer:
    """One pending resume timer per conversation; re-arming replaces it."""

    def __init__(self) -> None:
        self._handles: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task] = set()

    def schedule(
        self,
        conversation_id: str,
        delay_seconds: float,
        on_expire: Callable[[str], Awaitable[None]],
    ) -> None:
        """Arm (or re-arm) the resume timer for a conversation."""
        self.cancel(conversation_id)
        loop = asyncio.get_running_loop()
        self._handles[conversation_id] = loop.call_later(
            max(delay_seconds, 0.0), self._fire, conversation_id, on_expire
        )
        logger.debug(
            "handoff_timer_scheduled",
            conversation_id=conversation_id,
            delay_seconds=round(delay_seconds, 1),
        )

    def cancel(self, conversation_id: str) -> bool:
        handle = self._handles.pop(conversation_id, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def pending(self, conversation_id: str) -> bool:
        return conversation_id in self._handles

    def cancel_all(self) -> None:
        for conversation_id in list(self._handles):
            self.cancel(conversation_id)

    def _fire(
        self,
        conversation_id: str,
        on_expire: Callable[[str], Awaitable[None]],
    ) -> None:
        self._handles.pop(conversation_id, None)
        task = asyncio.ensure_future(on_expire(conversation_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
