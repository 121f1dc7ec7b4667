"""Per-lead write locks shared by the conversation engine and scheduled jobs."""

from __future__ import annotations

import asyncio
import weakref

from showroom_bot.schemas.lead import normalize_phone


class LeadLocks:
    """One ``asyncio.Lock`` per normalized phone.

    Lead stores patch a row in two steps (find, then write), so every writer
    for a phone holds its lock for the whole read-modify-write sequence.
    Locks nobody holds or waits on are dropped automatically.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def for_phone(self, phone: str) -> asyncio.Lock:
        key = normalize_phone(phone)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock
