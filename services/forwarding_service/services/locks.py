"""In-process mutual exclusion keyed by entity id.

These serialise writers inside one worker. Across workers the row locks
(``SELECT ... FOR UPDATE``) and the ``orders.version`` check take over.
"""

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Hashable


class KeyedLock:
    """A pool of asyncio locks, one per key, dropped once nobody holds or waits."""

    def __init__(self, name: str):
        self.name = name
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: defaultdict[Hashable, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)


# Order status, offers and acceptance.
order_locks = KeyedLock("order")
# Tracking appends (separate namespace; taken while an order lock may be held).
tracking_locks = KeyedLock("tracking")
# Ledger release/reverse.
ledger_locks = KeyedLock("ledger")
