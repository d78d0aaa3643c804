"""
RizzedIn — Per-key mutual exclusion.

Chat sends are serialised per chat and swipe rating updates per swiped
member.  Within one process an ``asyncio.Lock`` per key is enough; when a
Redis client is attached the same key is additionally held as a Redis lock
so that several API instances share one writer per key.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from redis.exceptions import LockError

from app.config import get_settings
from app.services.exceptions import ConflictError

logger = structlog.get_logger(__name__)

_KEY_PREFIX = "rizzedin:lock:"


class KeyedLock:
    """Hold one lock per string key; unused keys are dropped."""

    def __init__(self, redis_client=None, timeout_seconds: float = 60.0) -> None:
        self._redis = redis_client
        self._timeout = timeout_seconds
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    def attach_redis(self, redis_client) -> None:
        self._redis = redis_client

    def detach_redis(self) -> None:
        self._redis = None

    @property
    def distributed(self) -> bool:
        return self._redis is not None

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Serialise the body against every other holder of *key*.

        Raises
        ------
        ConflictError
            If the distributed lock cannot be acquired within the timeout.
        """
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                if self._redis is None:
                    yield
                else:
                    async with self._hold_distributed(key):
                        yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                self._locks.pop(key, None)

    @asynccontextmanager
    async def _hold_distributed(self, key: str) -> AsyncIterator[None]:
        redis_lock = self._redis.lock(
            f"{_KEY_PREFIX}{key}",
            timeout=self._timeout,
            blocking_timeout=self._timeout,
        )
        acquired = await redis_lock.acquire()
        if not acquired:
            logger.warning("distributed_lock_timeout", key=key)
            raise ConflictError(f"Resource {key} is busy, retry shortly")
        try:
            yield
        finally:
            try:
                await redis_lock.release()
            except LockError as exc:
                # Expired while held; the next holder already owns the key
                logger.warning("distributed_lock_release_failed", key=key, error=str(exc))


_keyed_lock: KeyedLock | None = None


def get_keyed_lock() -> KeyedLock:
    """Process-wide lock registry shared by the services."""
    global _keyed_lock
    if _keyed_lock is None:
        _keyed_lock = KeyedLock(timeout_seconds=get_settings().LOCK_TIMEOUT_SECONDS)
    return _keyed_lock
