"""Per-timeline write serialisation.

Each mentor and each participant timeline gets its own ``asyncio.Lock`` so
that the check-then-write sequence of a reservation cannot interleave with
another writer on the same timeline. Unrelated timelines never wait on each
other. Cross-process safety comes from the partial unique indexes on
``bookings``.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

LockKey = tuple[str, int]


def mentor_key(mentor_id: int) -> LockKey:
    return ("mentor", mentor_id)


def participant_key(participant_id: int) -> LockKey:
    return ("participant", participant_id)


class TimelineLocks:
    def __init__(self) -> None:
        self._locks: dict[LockKey, asyncio.Lock] = {}

    def _lock_for(self, key: LockKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def hold(self, *keys: LockKey) -> AsyncIterator[None]:
        """Acquire every lock in ``keys`` in a fixed global order."""
        ordered = sorted(set(keys))
        acquired: list[asyncio.Lock] = []
        try:
            for key in ordered:
                lock = self._lock_for(key)
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


timeline_locks = TimelineLocks()
