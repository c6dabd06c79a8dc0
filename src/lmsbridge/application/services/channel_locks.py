"""Per-channel mutual exclusion."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class ChannelLocks:
    """One asyncio.Lock per remote channel.

    Two passes over the same channel never interleave, so neither reads a
    member snapshot the other is about to change. Locks are dropped once no
    coroutine holds or waits for them.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, channel_id: str) -> AsyncIterator[None]:
        """Hold the lock of a channel for the duration of the block."""
        lock = self._locks.setdefault(channel_id, asyncio.Lock())
        self._holders[channel_id] = self._holders.get(channel_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[channel_id] -= 1
            if self._holders[channel_id] == 0:
                del self._holders[channel_id]
                del self._locks[channel_id]

    def is_locked(self, channel_id: str) -> bool:
        lock = self._locks.get(channel_id)
        return lock is not None and lock.locked()
