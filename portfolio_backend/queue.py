"""
Queue abstraction for background notification delivery.

Supports an in-memory fallback for tests/local runs and a Redis-backed
implementation for production.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)


class JobQueue(Protocol):
    """Minimal queue interface for handing notification ids to the worker."""

    def enqueue(self, job_id: str) -> None:
        ...

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        ...

    def size(self) -> int:
        ...


@dataclass
class InMemoryJobQueue:
    """FIFO queue for tests and single-process runs."""

    items: deque = field(default_factory=deque)
    _ready: threading.Condition = field(default_factory=threading.Condition)

    def enqueue(self, job_id: str) -> None:
        with self._ready:
            self.items.append(job_id)
            self._ready.notify()

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        with self._ready:
            if not self.items and block:
                self._ready.wait(timeout=timeout)
            if not self.items:
                return None
            return self.items.popleft()

    def size(self) -> int:
        return len(self.items)


@dataclass
class RedisJobQueue:
    """Redis-backed queue using list push/pop operations."""

    url: str
    queue_key: str = "portfolio:notifications"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def enqueue(self, job_id: str) -> None:
        self.client.rpush(self.queue_key, job_id)

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        try:
            if block:
                result = self.client.blpop(self.queue_key, timeout=timeout or 0)
                if result is None:
                    return None
                _, job_id = result
            else:
                job_id = self.client.lpop(self.queue_key)
                if job_id is None:
                    return None
            return job_id.decode("utf-8")
        except redis_exceptions.ConnectionError:
            # Managed Redis drops idle connections; reconnect and report empty.
            logger.warning("Redis queue connection reset, reconnecting")
            self.client = redis.Redis.from_url(self.url)
            return None

    def size(self) -> int:
        return int(self.client.llen(self.queue_key))
