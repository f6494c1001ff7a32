from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, MutableMapping, Optional


def cache_key(endpoint: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Stable key for (endpoint, params): parameter order never matters."""
    param_str = json.dumps(params, sort_keys=True, default=str) if params else ""
    return f"{endpoint}?{param_str}"


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: Any
    fetched_at: float


@dataclass(frozen=True)
class CacheStats:
    size: int
    oldest_entry_age: Optional[float]


class ResponseCache:
    """In-memory response cache with a fixed time-to-live per entry.

    Stale entries are dropped lazily when read; nothing sweeps the store.
    """

    def __init__(
        self,
        ttl_seconds: float,
        *,
        clock: Callable[[], float] = time.time,
        store: Optional[MutableMapping[str, CacheEntry]] = None,
    ) -> None:
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._store: MutableMapping[str, CacheEntry] = store if store is not None else {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if self._clock() - entry.fetched_at >= self.ttl_seconds:
                del self._store[key]
                return None
            return entry

    def put(self, key: str, payload: Any) -> CacheEntry:
        entry = CacheEntry(key=key, payload=payload, fetched_at=self._clock())
        with self._lock:
            self._store[key] = entry
        return entry

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def stats(self) -> CacheStats:
        with self._lock:
            now = self._clock()
            oldest = min((e.fetched_at for e in self._store.values()), default=None)
            return CacheStats(
                size=len(self._store),
                oldest_entry_age=(now - oldest) if oldest is not None else None,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
