"""Per-key asyncio locks.

Mutations for one key are serialized while different keys proceed
independently. Lock objects are dropped as soon as nobody holds or waits
on them, so the table stays as small as the set of in-flight keys.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable


class _Slot:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class KeyedLock:
    """A family of asyncio locks addressed by key.

    Usage:
        locks = KeyedLock()
        async with locks.hold("client-1"):
            ...
    """

    def __init__(self) -> None:
        self._slots: Dict[Hashable, _Slot] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        slot = self._slots.get(key)
        if slot is None:
            slot = self._slots[key] = _Slot()
        slot.users += 1
        try:
            async with slot.lock:
                yield
        finally:
            slot.users -= 1
            if slot.users == 0 and self._slots.get(key) is slot:
                del self._slots[key]

    def is_locked(self, key: Hashable) -> bool:
        slot = self._slots.get(key)
        return slot is not None and slot.lock.locked()

    def __len__(self) -> int:
        return len(self._slots)
