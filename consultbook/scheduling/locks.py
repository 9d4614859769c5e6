"""Per-(resource, date) serialization point for booking writes.

One asyncio.Lock per key, created on demand and dropped when the last holder
or waiter leaves, so unrelated resources and days never contend and the
registry does not grow with the calendar. It only serializes writers inside
one process; the partial unique index on bookings covers the rest.
"""
from __future__ import annotations

import asyncio
import datetime as _dt
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Tuple

logger = logging.getLogger(__name__)

LockKey = Tuple[str, _dt.date]


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class SlotLockRegistry:
    def __init__(self) -> None:
        self._entries: Dict[LockKey, _Entry] = {}

    @asynccontextmanager
    async def hold(self, resource_id: str, day: _dt.date) -> AsyncIterator[None]:
        key: LockKey = (resource_id, day)
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _Entry()
        entry.users += 1
        try:
            if entry.lock.locked():
                logger.debug("SlotLockRegistry: waiting for %s on %s", resource_id, day)
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0 and self._entries.get(key) is entry:
                del self._entries[key]

    def is_held(self, resource_id: str, day: _dt.date) -> bool:
        entry = self._entries.get((resource_id, day))
        return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        return len(self._entries)
