"""Timestamp helpers for sheet-facing dates."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from showroom_bot.config import settings


def format_local(ts: Optional[float] = None, tz: str = settings.timezone) -> str:
    """Human-readable local date, e.g. "19/10/2026, 04:36:00 PM"."""
    moment = datetime.fromtimestamp(time.time() if ts is None else ts, ZoneInfo(tz))
    return moment.strftime("%d/%m/%Y, %I:%M:%S %p")


def to_iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, timezone.utc).isoformat(timespec="seconds")


def from_iso(value: str) -> Optional[float]:
    """Parse an ISO timestamp cell; blank or malformed cells give None."""
    if not value:
        return None
    try:
        moment = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.timestamp()
