"""
Expiring key-value storage.

Holds the rate limit counters and fetch clock entries. Anything that
implements ExpiringStore (an in-process dict here, Redis or a shared
cache in a multi-worker deployment) can be plugged in.
"""
import asyncio
import heapq
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional


class ExpiringStore(ABC):
    """Key-value store whose entries expire after a TTL in seconds."""

    @abstractmethod
    async def get(self, key: str, default: Any = None) -> Any:
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: float) -> None:
        pass

    @abstractmethod
    async def incr(self, key: str, ttl: float) -> int:
        """
        Atomically increment an integer counter and return the new value.

        The TTL only applies when the increment creates the counter, so a
        window never slides forward while it is being consumed.
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass


class MemoryStore(ExpiringStore):
    """
    Single-process ExpiringStore backed by a dict.

    Expired entries are dropped when read, and swept on every write so keys
    that are never read again do not accumulate.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: dict[str, tuple[Any, float]] = {}
        self._expiries: list[tuple[float, str]] = []
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._data)

    def _live(self, key: str) -> Optional[tuple[Any, float]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry[1] <= self._clock():
            del self._data[key]
            return None
        return entry

    def _put(self, key: str, value: Any, expires_at: float) -> None:
        if key not in self._data or self._data[key][1] != expires_at:
            heapq.heappush(self._expiries, (expires_at, key))
        self._data[key] = (value, expires_at)

    def _sweep(self) -> None:
        now = self._clock()
        while self._expiries and self._expiries[0][0] <= now:
            expires_at, key = heapq.heappop(self._expiries)
            # Skip heap entries for keys rewritten with a later expiry
            entry = self._data.get(key)
            if entry is not None and entry[1] == expires_at:
                del self._data[key]

    async def get(self, key: str, default: Any = None) -> Any:
        entry = self._live(key)
        return default if entry is None else entry[0]

    async def set(self, key: str, value: Any, ttl: float) -> None:
        self._sweep()
        self._put(key, value, self._clock() + ttl)

    async def incr(self, key: str, ttl: float) -> int:
        async with self._lock:
            self._sweep()
            entry = self._live(key)
            if entry is None:
                self._put(key, 1, self._clock() + ttl)
                return 1
            value = int(entry[0]) + 1
            self._put(key, value, entry[1])
            return value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()
        self._expiries.clear()
