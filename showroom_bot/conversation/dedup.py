"""Bounded recent-message-ID cache guarding against transport redelivery."""

from __future__ import annotations

import json
import pathlib
from typing import Optional

import structlog
from cachetools import FIFOCache

logger = structlog.get_logger()


class DedupCache:
    """Remembers the last ``maxsize`` message ids, evicting the oldest first.

    When ``path`` is set the ids are written to disk after every insert so a
    crash/restart does not re-process messages still being redelivered.
    """

    def __init__(self, maxsize: int = 500, path: Optional[pathlib.Path] = None):
        self.maxsize = maxsize
        self.path = path
        self._ids: FIFOCache[str, bool] = FIFOCache(maxsize=maxsize)
        if path is not None:
            self._load()

    def seen(self, message_id: str) -> bool:
        """Check-and-set: False the first time an id is presented, True afterwards."""
        if message_id in self._ids:
            return True
        self._ids[message_id] = True
        self._save()
        return False

    def __contains__(self, message_id: str) -> bool:
        return message_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def _load(self) -> None:
        assert self.path is not None
        if not self.path.exists():
            return
        try:
            ids = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error("dedup_load_failed", path=str(self.path), error=str(e))
            return
        for message_id in ids[-self.maxsize:]:
            self._ids[str(message_id)] = True
        logger.info("dedup_loaded", count=len(self._ids), path=str(self.path))

    def _save(self) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(".tmp")
            tmp.write_text(json.dumps(list(self._ids)), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as e:
            logger.error("dedup_save_failed", path=str(self.path), error=str(e))
