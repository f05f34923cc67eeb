"""Process-lifetime TTL cache shared by the analytics and price endpoints."""

from __future__ import annotations

import threading
import time
from typing import Callable, Generic, TypeVar

from cachetools import TTLCache

V = TypeVar("V")


class ResponseCache(Generic[V]):
    """String-keyed TTL cache with prefix invalidation.

    FastAPI runs sync endpoints in a threadpool, so every access to the
    underlying ``TTLCache`` goes through one lock.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float,
        maxsize: int = 1024,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._entries: TTLCache[str, V] = TTLCache(maxsize=maxsize, ttl=ttl_seconds, timer=timer)
        self._lock = threading.Lock()

    def get(self, key: str) -> V | None:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, value: V) -> None:
        with self._lock:
            self._entries[key] = value

    def invalidate(self, prefix: str) -> int:
        """Drop every entry whose key starts with ``prefix``; return the count."""

        with self._lock:
            stale = [key for key in self._entries.keys() if key.startswith(prefix)]
            for key in stale:
                self._entries.pop(key, None)
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
