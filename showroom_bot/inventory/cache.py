"""Inventory snapshot cache with retry and stale fallback."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence

import structlog

from showroom_bot.config import settings
from showroom_bot.retry import RetryPolicy
from showroom_bot.schemas.inventory import InventorySnapshot, Vehicle

logger = structlog.get_logger()

NewListingsCallback = Callable[[list[Vehicle]], Awaitable[Any]]


class InventorySource(Protocol):
    async def fetch_current_listings(self) -> list[Vehicle]: ...


class InventoryCache:
    """Holds the latest successful snapshot.

    ``refresh`` replaces the snapshot wholesale on success and keeps the
    previous one on failure, so readers always see a complete list.
    """

    def __init__(
        self,
        source: InventorySource,
        retry_delays: Sequence[float] = tuple(settings.inventory_retry_schedule),
        on_new_listings: Optional[NewListingsCallback] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.source = source
        self.on_new_listings = on_new_listings
        self.clock = clock
        self.retry_policy = RetryPolicy(delays=tuple(retry_delays), sleep=sleep, name="inventory_fetch")
        self._snapshot = InventorySnapshot()

    @property
    def snapshot(self) -> InventorySnapshot:
        return self._snapshot

    async def refresh(self) -> InventorySnapshot:
        """Fetch with retries; on total failure keep serving the previous snapshot."""
        previous = self._snapshot
        try:
            vehicles = await self.retry_policy.call(self.source.fetch_current_listings)
        except Exception as e:
            if previous.available:
                logger.warning(
                    "inventory_refresh_failed_using_stale",
                    error=str(e),
                    vehicles=len(previous.vehicles),
                )
            else:
                logger.error("inventory_refresh_failed_no_cache", error=str(e))
            return previous

        self._snapshot = InventorySnapshot(vehicles=tuple(vehicles), fetched_at=self.clock())
        logger.info("inventory_refreshed", vehicles=len(vehicles))

        # The very first load is the baseline, not "new" stock
        if previous.fetched_at is not None:
            await self._announce_new(previous, self._snapshot)
        return self._snapshot

    async def _announce_new(self, previous: InventorySnapshot, current: InventorySnapshot) -> None:
        known = {v.url for v in previous.vehicles}
        new_listings = [v for v in current.vehicles if v.url and v.url not in known]
        if not new_listings or self.on_new_listings is None:
            return
        logger.info("new_listings_detected", count=len(new_listings))
        try:
            await self.on_new_listings(new_listings)
        except Exception as e:
            logger.error("new_listings_callback_failed", error=str(e))
