"""
Per-key asyncio locks.

Serializes coroutines that touch the same key inside one process while
unrelated keys never contend. Cross-process exclusion comes from the
database (primary keys and row locks), not from here.
"""
import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class KeyedLock:
    """A family of asyncio locks addressed by string key."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            # Drop idle locks so the mapping doesn't grow with every order
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def is_held(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


# Order collections are mutated under the user lock, invoice rendering under the order lock.
user_locks = KeyedLock("user")
order_locks = KeyedLock("order")
