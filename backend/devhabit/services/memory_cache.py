"""
In-process key/value cache with per-entry expiry.

Backs the idempotency store. Expired entries are dropped lazily on read and
swept opportunistically on write; there is no background task. The clock is
injectable so tests can move time forward without sleeping.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional


@dataclass
class _Item:
    value: Any
    expires_at: float


class MemoryCache:
    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_every: int = 256):
        self._clock = clock
        self._items: Dict[str, _Item] = {}
        self._lock = threading.Lock()
        self._writes = 0
        self._sweep_every = sweep_every

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            if item.expires_at <= self._clock():
                del self._items[key]
                return None
            return item.value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        with self._lock:
            now = self._clock()
            self._items[key] = _Item(value=value, expires_at=now + ttl_seconds)
            self._writes += 1
            if self._writes % self._sweep_every == 0:
                self._sweep(now)

    def remove(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def _sweep(self, now: float) -> None:
        expired = [key for key, item in self._items.items() if item.expires_at <= now]
        for key in expired:
            del self._items[key]
