# rentcrunch/adapters/cache.py
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    expired: int = 0

    def snapshot(self) -> dict[str, int]:
        return {"hits": self.hits, "misses": self.misses, "expired": self.expired}


@dataclass
class _Entry:
    value: Any
    stored_at: float


class TTLCache:
    """
    Process-lifetime response cache (not persisted).

    Entries older than `ttl_s` are treated as absent and evicted lazily on read,
    or eagerly via purge_expired(). `max_entries` evicts oldest-first.
    """

    def __init__(
        self,
        ttl_s: float,
        *,
        max_entries: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_s = float(ttl_s)
        self.max_entries = int(max_entries)
        self._clock = clock
        self._data: dict[str, _Entry] = {}
        self.stats = CacheStats()

    def _is_fresh(self, entry: _Entry, now: float) -> bool:
        return (now - entry.stored_at) <= self.ttl_s

    def get(self, key: str) -> Any | None:
        entry = self._data.get(key)
        if entry is None:
            self.stats.misses += 1
            return None
        if not self._is_fresh(entry, self._clock()):
            del self._data[key]
            self.stats.expired += 1
            self.stats.misses += 1
            return None
        self.stats.hits += 1
        return entry.value

    def set(self, key: str, value: Any) -> None:
        self._data.pop(key, None)
        self._data[key] = _Entry(value=value, stored_at=self._clock())
        while len(self._data) > self.max_entries:
            oldest = next(iter(self._data))
            del self._data[oldest]

    def purge_expired(self) -> int:
        now = self._clock()
        stale = [k for k, e in self._data.items() if not self._is_fresh(e, now)]
        for k in stale:
            del self._data[k]
        self.stats.expired += len(stale)
        return len(stale)

    def clear(self) -> None:
        self._data.clear()

    def __contains__(self, key: str) -> bool:
        entry = self._data.get(key)
        return entry is not None and self._is_fresh(entry, self._clock())

    def __len__(self) -> int:
        return len(self._data)
