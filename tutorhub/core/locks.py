"""Keyed mutex backends (in-memory and Redis) used to serialize bookings per tutor."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, Protocol

from tutorhub.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class KeyedLock(Protocol):
    """Common contract for keyed lock backends."""

    def hold(self, key: str) -> AbstractAsyncContextManager[None]:
        """Hold the lock for ``key`` for the duration of the block."""


class InMemoryKeyedLock:
    """Per-key asyncio locks for a single process.

    Entries are dropped once the last holder or waiter leaves, so the map
    only grows with keys that are currently contended.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @property
    def active_keys(self) -> set[str]:
        return set(self._locks)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


class RedisKeyedLock:
    """Redis-backed lock shared across app instances.

    The lease bounds how long a crashed holder can keep the key; the
    storage exclusion constraint still rejects overlaps if a lease expires
    mid-transaction.
    """

    def __init__(
        self,
        *,
        redis_url: str,
        namespace: str,
        lease_seconds: float,
        blocking_timeout_seconds: float,
    ) -> None:
        self._redis_url = redis_url
        self._namespace = namespace
        self._lease_seconds = lease_seconds
        self._blocking_timeout_seconds = blocking_timeout_seconds
        self._init_lock = asyncio.Lock()
        self._client: Any | None = None

    def _build_storage_key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    async def _ensure_initialized(self) -> None:
        if self._client is not None:
            return

        async with self._init_lock:
            if self._client is None:
                from redis.asyncio import from_url

                self._client = from_url(
                    self._redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        from redis.exceptions import LockError

        await self._ensure_initialized()
        lock = self._client.lock(
            self._build_storage_key(key),
            timeout=self._lease_seconds,
            blocking_timeout=self._blocking_timeout_seconds,
        )
        if not await lock.acquire():
            raise TimeoutError(f"Could not acquire lock {key!r}")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                logger.warning("Lock %s expired before release", key)


_keyed_lock: KeyedLock | None = None
_keyed_lock_signature: tuple[str, str | None, str, float, float] | None = None


def _build_keyed_lock(settings: Settings) -> KeyedLock:
    if settings.booking_lock_backend == "redis":
        return RedisKeyedLock(
            redis_url=settings.redis_url or "",
            namespace=settings.booking_lock_redis_namespace,
            lease_seconds=settings.booking_lock_lease_seconds,
            blocking_timeout_seconds=settings.booking_lock_timeout_seconds,
        )
    return InMemoryKeyedLock()


def get_keyed_lock() -> KeyedLock:
    """Return shared lock instance for configured backend."""
    global _keyed_lock, _keyed_lock_signature
    settings = get_settings()
    signature = (
        settings.booking_lock_backend,
        settings.redis_url,
        settings.booking_lock_redis_namespace,
        settings.booking_lock_lease_seconds,
        settings.booking_lock_timeout_seconds,
    )
    if _keyed_lock is None or _keyed_lock_signature != signature:
        _keyed_lock = _build_keyed_lock(settings)
        _keyed_lock_signature = signature
    return _keyed_lock
