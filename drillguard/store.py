"""Expiring key/value stores holding login attempt state.

All values are integers (counters or UNIX timestamps). ``increment`` must be
a single atomic operation: two concurrent failures for the same identity
may never observe the same counter value.
"""

from __future__ import annotations

import heapq
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, List, Protocol, Tuple

import redis

from drillguard.errors import StoreUnavailable


def system_time() -> float:
    return time.time()


class KeyValueStore(Protocol):
    def get(self, key: str) -> int | None: ...

    def put(self, key: str, value: int, ttl_s: int) -> None: ...

    def increment(self, key: str, ttl_s: int) -> int: ...

    def delete(self, *keys: str) -> None: ...


class InMemoryStore:
    """Process-local store.

    Expired entries are dropped when read, and every write also sweeps the
    entries whose TTL has passed, so keys that are never read again do not
    accumulate.
    """

    def __init__(self, clock: Callable[[], float] = system_time):
        self._clock = clock
        self._lock = threading.Lock()
        # key -> (value, expires_at)
        self._data: Dict[str, Tuple[int, float]] = {}
        # (expires_at, key); may hold stale entries for rewritten keys
        self._expiry: List[Tuple[float, str]] = []

    def _live(self, key: str, now: float) -> int | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= now:
            del self._data[key]
            return None
        return value

    def _set(self, key: str, value: int, expires_at: float) -> None:
        self._data[key] = (value, expires_at)
        heapq.heappush(self._expiry, (expires_at, key))

    def _sweep(self, now: float) -> None:
        while self._expiry and self._expiry[0][0] <= now:
            expires_at, key = heapq.heappop(self._expiry)
            entry = self._data.get(key)
            if entry is not None and entry[1] == expires_at:
                del self._data[key]
        if not self._data:
            self._expiry.clear()

    def purge_expired(self) -> None:
        with self._lock:
            self._sweep(self._clock())

    def get(self, key: str) -> int | None:
        with self._lock:
            return self._live(key, self._clock())

    def put(self, key: str, value: int, ttl_s: int) -> None:
        with self._lock:
            now = self._clock()
            self._sweep(now)
            self._set(key, int(value), now + ttl_s)

    def increment(self, key: str, ttl_s: int) -> int:
        with self._lock:
            now = self._clock()
            self._sweep(now)
            value = (self._live(key, now) or 0) + 1
            self._set(key, value, now + ttl_s)
            return value

    def delete(self, *keys: str) -> None:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)


@contextmanager
def _translate_errors(operation: str):
    try:
        yield
    except redis.exceptions.RedisError as exc:
        raise StoreUnavailable(f"redis {operation} failed: {exc}") from exc


class RedisStore:
    """Store backed by a shared Redis server; safe across processes."""

    def __init__(self, client: redis.Redis):
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        return cls(redis.Redis.from_url(url))

    def get(self, key: str) -> int | None:
        with _translate_errors("get"):
            raw = self._redis.get(key)
        return int(raw) if raw is not None else None

    def put(self, key: str, value: int, ttl_s: int) -> None:
        with _translate_errors("set"):
            self._redis.set(key, int(value), ex=ttl_s)

    def increment(self, key: str, ttl_s: int) -> int:
        with _translate_errors("incr"):
            pipe = self._redis.pipeline(transaction=True)
            pipe.incr(key)
            pipe.expire(key, ttl_s)
            value, _ = pipe.execute()
        return int(value)

    def delete(self, *keys: str) -> None:
        if not keys:
            return
        with _translate_errors("delete"):
            self._redis.delete(*keys)


def build_store(cfg) -> KeyValueStore:
    if cfg.store_backend == "redis":
        return RedisStore.from_url(cfg.redis_url)
    if cfg.store_backend == "memory":
        return InMemoryStore()
    raise ValueError(f"Unsupported lockout store: {cfg.store_backend}")
