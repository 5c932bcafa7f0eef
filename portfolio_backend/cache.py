"""
Key/value cache with TTLs.

An in-memory implementation serves tests and single-process deployments; the
Redis implementation is used when ``REDIS_URL`` is set.
"""

from __future__ import annotations

import fnmatch
import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)


class Cache(Protocol):
    """Minimal cache interface used by the services."""

    def get(self, key: str) -> Any:
        ...

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        ...

    def delete(self, key: str) -> bool:
        ...

    def delete_pattern(self, pattern: str) -> int:
        ...

    def flush(self) -> bool:
        ...

    def get_or_set(
        self, key: str, factory: Callable[[], Any], ttl: Optional[int] = None
    ) -> Any:
        ...

    def stats(self) -> dict:
        ...

    def ping(self) -> dict:
        ...


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    errors: int = 0

    def as_dict(self) -> dict:
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "errors": self.errors,
            "hitRate": self.hits / total if total else 0.0,
        }


class _CacheBase:
    prefix: str
    default_ttl: int
    counters: CacheStats

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get_or_set(
        self, key: str, factory: Callable[[], Any], ttl: Optional[int] = None
    ) -> Any:
        value = self.get(key)
        if value is not None:
            return value
        value = factory()
        if value is not None:
            self.set(key, value, ttl)
        return value

    def stats(self) -> dict:
        return self.counters.as_dict()


@dataclass
class InMemoryCache(_CacheBase):
    """Dictionary cache with lazy expiry."""

    prefix: str = "portfolio:"
    default_ttl: int = 3600
    counters: CacheStats = field(default_factory=CacheStats)
    _entries: dict = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def get(self, key: str) -> Any:
        full_key = self._key(key)
        with self._lock:
            entry = self._entries.get(full_key)
            if entry is not None and entry[1] is not None and entry[1] <= time.time():
                del self._entries[full_key]
                entry = None
            if entry is None:
                self.counters.misses += 1
                return None
            self.counters.hits += 1
            return json.loads(entry[0])

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        ttl = self.default_ttl if ttl is None else ttl
        expires_at = time.time() + ttl if ttl > 0 else None
        with self._lock:
            # Store serialized so callers never share mutable state with the cache.
            self._entries[self._key(key)] = (json.dumps(value, default=str), expires_at)
            self.counters.sets += 1
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            removed = self._entries.pop(self._key(key), None) is not None
            if removed:
                self.counters.deletes += 1
            return removed

    def delete_pattern(self, pattern: str) -> int:
        match = self._key(pattern)
        with self._lock:
            keys = [k for k in self._entries if fnmatch.fnmatchcase(k, match)]
            for k in keys:
                del self._entries[k]
            self.counters.deletes += len(keys)
            return len(keys)

    def flush(self) -> bool:
        with self._lock:
            self._entries.clear()
        return True

    def ping(self) -> dict:
        with self._lock:
            size = len(self._entries)
        return {"status": "healthy", "backend": "memory", "keys": size}

    def reset(self) -> None:
        self.flush()
        self.counters = CacheStats()


@dataclass
class RedisCache(_CacheBase):
    """Redis-backed cache storing JSON values with SETEX."""

    url: str
    prefix: str = "portfolio:"
    default_ttl: int = 3600
    counters: CacheStats = field(default_factory=CacheStats)

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def get(self, key: str) -> Any:
        try:
            raw = self.client.get(self._key(key))
        except redis_exceptions.RedisError as exc:
            self.counters.errors += 1
            logger.warning("Cache get failed for %s: %s", key, exc)
            return None
        if raw is None:
            self.counters.misses += 1
            return None
        self.counters.hits += 1
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        ttl = self.default_ttl if ttl is None else ttl
        payload = json.dumps(value, default=str)
        try:
            if ttl > 0:
                self.client.setex(self._key(key), ttl, payload)
            else:
                self.client.set(self._key(key), payload)
        except redis_exceptions.RedisError as exc:
            self.counters.errors += 1
            logger.warning("Cache set failed for %s: %s", key, exc)
            return False
        self.counters.sets += 1
        return True

    def delete(self, key: str) -> bool:
        try:
            removed = bool(self.client.delete(self._key(key)))
        except redis_exceptions.RedisError as exc:
            self.counters.errors += 1
            logger.warning("Cache delete failed for %s: %s", key, exc)
            return False
        if removed:
            self.counters.deletes += 1
        return removed

    def delete_pattern(self, pattern: str) -> int:
        try:
            keys = list(self.client.scan_iter(match=self._key(pattern)))
            removed = self.client.delete(*keys) if keys else 0
        except redis_exceptions.RedisError as exc:
            self.counters.errors += 1
            logger.warning("Cache invalidate failed for %s: %s", pattern, exc)
            return 0
        self.counters.deletes += removed
        return removed

    def flush(self) -> bool:
        return self.delete_pattern("*") >= 0

    def ping(self) -> dict:
        started = time.time()
        try:
            self.client.ping()
        except redis_exceptions.RedisError as exc:
            return {"status": "unhealthy", "backend": "redis", "error": str(exc)}
        latency_ms = round((time.time() - started) * 1000, 2)
        return {"status": "healthy", "backend": "redis", "latencyMs": latency_ms}
