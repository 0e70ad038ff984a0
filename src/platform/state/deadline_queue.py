"""
Deadline Queue

Time-indexed min-heap of (deadline, key). Arming a key again replaces its
previous deadline; disarming is lazy (stale heap entries are skipped when
popped). A waiter can block on `wait_changed()` to learn that the earliest deadline
moved.
"""

from datetime import datetime
import heapq
import itertools
from typing import Optional

import anyio


class DeadlineQueue:
    def __init__(self) -> None:
        self._heap: list[tuple[datetime, int, str]] = []
        self._deadlines: dict[str, tuple[datetime, int]] = {}
        self._counter = itertools.count()
        self._changed: Optional[anyio.Event] = None

    def __len__(self) -> int:
        return len(self._deadlines)

    def __contains__(self, key: str) -> bool:
        return key in self._deadlines

    def arm(self, *, key: str, deadline: datetime) -> None:
        entry_id = next(self._counter)
        self._deadlines[key] = (deadline, entry_id)
        heapq.heappush(self._heap, (deadline, entry_id, key))
        self._notify()

    def disarm(self, *, key: str) -> bool:
        """Returns False when the key was not armed (already fired or never armed)."""
        return self._deadlines.pop(key, None) is not None

    def deadline_of(self, *, key: str) -> Optional[datetime]:
        entry = self._deadlines.get(key)
        return entry[0] if entry else None

    def next_deadline(self) -> Optional[datetime]:
        self._drop_stale()
        return self._heap[0][0] if self._heap else None

    def pop_due(self, *, now: datetime) -> list[str]:
        """Remove and return every key whose deadline is <= now, earliest first."""
        due: list[str] = []
        while self._heap:
            self._drop_stale()
            if not self._heap or self._heap[0][0] > now:
                break
            _, _, key = heapq.heappop(self._heap)
            del self._deadlines[key]
            due.append(key)
        return due

    async def wait_changed(self) -> None:
        if self._changed is None:
            self._changed = anyio.Event()
        await self._changed.wait()

    def _notify(self) -> None:
        # anyio.Event cannot be reset; the next waiter creates a fresh one
        if self._changed is not None:
            self._changed.set()
            self._changed = None

    def _drop_stale(self) -> None:
        while self._heap:
            deadline, entry_id, key = self._heap[0]
            if self._deadlines.get(key) == (deadline, entry_id):
                return
            heapq.heappop(self._heap)
