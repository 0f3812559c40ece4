"""Per-aggregate asyncio locks.

Every repository call awaits simulated store latency, so two requests on the
same aggregate can interleave between a read and the write that depends on it.
Mutations hold the aggregate's lock across read, check and commit.
"""

import asyncio
import logging
from collections.abc import Hashable
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class KeyedLocks:
    def __init__(self):
        self._locks: dict[tuple[str, Hashable], asyncio.Lock] = {}
        self._waiters: dict[tuple[str, Hashable], int] = {}
        self._loop: asyncio.AbstractEventLoop | None = None

    def _bind_loop(self) -> None:
        loop = asyncio.get_running_loop()
        if loop is not self._loop:
            # Locks created on a previous loop cannot be awaited on this one
            self._locks.clear()
            self._waiters.clear()
            self._loop = loop

    @asynccontextmanager
    async def hold(self, kind: str, key: Hashable):
        self._bind_loop()
        lock_key = (kind, key)
        lock = self._locks.setdefault(lock_key, asyncio.Lock())
        self._waiters[lock_key] = self._waiters.get(lock_key, 0) + 1
        try:
            async with lock:
                logger.debug(f"Acquired {kind} lock for {key}")
                yield
        finally:
            remaining = self._waiters.get(lock_key, 1) - 1
            if remaining <= 0:
                self._waiters.pop(lock_key, None)
                self._locks.pop(lock_key, None)
            else:
                self._waiters[lock_key] = remaining

    def held(self, kind: str, key: Hashable) -> bool:
        lock = self._locks.get((kind, key))
        return bool(lock and lock.locked())


aggregate_locks = KeyedLocks()
