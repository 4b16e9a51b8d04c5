"""Bounded, expiring cache of carrier address codes.

Address validation is a paid round-trip to the carrier, and the same vendor
origin address is validated on every quote. The cache is an explicit object
handed to the carrier adapter, never a module global, so tests can clear it
or pass ``None`` to bypass it entirely.
"""

import threading
import time
from collections import OrderedDict
from typing import Callable


class AddressCodeCache:
    """LRU cache with a per-entry time-to-live.

    >>> cache = AddressCodeCache(max_size=2, ttl_seconds=60)
    >>> cache.set("a", "101"); cache.set("b", "102"); cache.set("c", "103")
    >>> cache.get("a") is None
    True
    """

    def __init__(
        self,
        max_size: int = 1024,
        ttl_seconds: float = 86400,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._data: OrderedDict[str, tuple[str, float]] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                self.misses += 1
                return None
            code, expires_at = entry
            if expires_at <= self._clock():
                del self._data[key]
                self.misses += 1
                return None
            self._data.move_to_end(key)
            self.hits += 1
            return code

    def set(self, key: str, code: str) -> None:
        with self._lock:
            if key in self._data:
                self._data.move_to_end(key)
            elif len(self._data) >= self.max_size:
                self._data.popitem(last=False)
            self._data[key] = (code, self._clock() + self.ttl_seconds)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self.hits = self.misses = 0

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._data)
