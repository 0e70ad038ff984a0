"""
Keyed Lock

Mutual exclusion per key (one anyio.Lock per showtime). Every seat mutation
of a showtime runs while holding its lock, so transitions on one seat map are
applied one at a time and in a single order.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import anyio

from src.platform.logging.loguru_io import Logger


class KeyedLock:
    def __init__(self) -> None:
        self._locks: dict[str, anyio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, *, key: str) -> AsyncIterator[None]:
        """
        Usage:
            async with keyed_lock.hold(key=showtime_id):
                ...
        """
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = anyio.Lock()
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                Logger.base.debug(f'🔒 [LOCK] Acquired {key}')
                yield
        finally:
            self._waiters[key] -= 1
            # Forget idle locks so the map does not grow with every showtime ever touched
            if not self._waiters[key]:
                del self._waiters[key]
                del self._locks[key]
            Logger.base.debug(f'🔓 [LOCK] Released {key}')

    def is_locked(self, *, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @property
    def active_keys(self) -> int:
        return len(self._locks)
