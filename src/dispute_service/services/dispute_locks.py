"""Per-dispute serialization of state transitions."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


class DisputeLockRegistry:
    """Hands out one asyncio.Lock per dispute id; unused locks are dropped."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, dispute_id: str) -> AsyncIterator[None]:
        """Run the body with the dispute's lock held."""
        lock = self._locks.get(dispute_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[dispute_id] = lock
        self._holders[dispute_id] = self._holders.get(dispute_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._holders[dispute_id] - 1
            if remaining == 0:
                del self._holders[dispute_id]
                del self._locks[dispute_id]
            else:
                self._holders[dispute_id] = remaining

    def is_held(self, dispute_id: str) -> bool:
        lock = self._locks.get(dispute_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
