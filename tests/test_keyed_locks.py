from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from tutorhub.core import locks as locks_module
from tutorhub.core.locks import InMemoryKeyedLock


def _settings(**overrides) -> SimpleNamespace:
    values = {
        "booking_lock_backend": "memory",
        "redis_url": None,
        "booking_lock_redis_namespace": "booking_lock",
        "booking_lock_lease_seconds": 30.0,
        "booking_lock_timeout_seconds": 10.0,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.mark.asyncio
async def test_same_key_is_serialized() -> None:
    lock = InMemoryKeyedLock()
    inside = 0
    peak = 0

    async def _critical() -> None:
        nonlocal inside, peak
        async with lock.hold("tutor:1"):
            inside += 1
            peak = max(peak, inside)
            await asyncio.sleep(0.005)
            inside -= 1

    await asyncio.gather(*(_critical() for _ in range(5)))

    assert peak == 1
    assert lock.active_keys == set()


@pytest.mark.asyncio
async def test_different_keys_do_not_block_each_other() -> None:
    lock = InMemoryKeyedLock()
    entered = asyncio.Event()

    async with lock.hold("tutor:1"):
        async with lock.hold("tutor:2"):
            entered.set()
        assert lock.active_keys == {"tutor:1"}

    assert entered.is_set()
    assert lock.active_keys == set()


@pytest.mark.asyncio
async def test_key_is_released_when_block_raises() -> None:
    lock = InMemoryKeyedLock()

    with pytest.raises(RuntimeError):
        async with lock.hold("tutor:1"):
            raise RuntimeError("boom")

    assert lock.active_keys == set()
    async with asyncio.timeout(1):
        async with lock.hold("tutor:1"):
            pass


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_leak_key() -> None:
    lock = InMemoryKeyedLock()

    async with lock.hold("tutor:1"):
        with pytest.raises(TimeoutError):
            async with asyncio.timeout(0.01):
                async with lock.hold("tutor:1"):
                    pass
        assert lock.active_keys == {"tutor:1"}

    assert lock.active_keys == set()


def test_get_keyed_lock_uses_redis_backend_when_configured(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    class FakeRedisLock:
        def __init__(
            self,
            *,
            redis_url: str,
            namespace: str,
            lease_seconds: float,
            blocking_timeout_seconds: float,
        ) -> None:
            self.redis_url = redis_url
            self.namespace = namespace
            self.lease_seconds = lease_seconds
            self.blocking_timeout_seconds = blocking_timeout_seconds

    settings = _settings(
        booking_lock_backend="redis",
        redis_url="redis://redis:6379/0",
        booking_lock_redis_namespace="booking_lock_test",
    )
    monkeypatch.setattr(locks_module, "get_settings", lambda: settings)
    monkeypatch.setattr(locks_module, "RedisKeyedLock", FakeRedisLock)
    monkeypatch.setattr(locks_module, "_keyed_lock", None)
    monkeypatch.setattr(locks_module, "_keyed_lock_signature", None)

    lock = locks_module.get_keyed_lock()
    assert isinstance(lock, FakeRedisLock)
    assert lock.redis_url == "redis://redis:6379/0"
    assert lock.namespace == "booking_lock_test"
    assert lock.lease_seconds == 30.0
    assert lock.blocking_timeout_seconds == 10.0


def test_get_keyed_lock_reuses_instance_for_same_signature(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(locks_module, "get_settings", lambda: _settings())
    monkeypatch.setattr(locks_module, "_keyed_lock", None)
    monkeypatch.setattr(locks_module, "_keyed_lock_signature", None)

    first = locks_module.get_keyed_lock()
    second = locks_module.get_keyed_lock()

    assert isinstance(first, InMemoryKeyedLock)
    assert first is second


def test_get_keyed_lock_rebuilds_when_signature_changes(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    settings = _settings()
    monkeypatch.setattr(locks_module, "get_settings", lambda: settings)
    monkeypatch.setattr(locks_module, "_keyed_lock", None)
    monkeypatch.setattr(locks_module, "_keyed_lock_signature", None)

    first = locks_module.get_keyed_lock()
    settings.booking_lock_timeout_seconds = 2.0
    second = locks_module.get_keyed_lock()

    assert first is not second


class FakeRedisLockHandle:
    def __init__(self, owner: "FakeRedisClient", name: str, acquired: bool) -> None:
        self.owner = owner
        self.name = name
        self.acquired = acquired

    async def acquire(self) -> bool:
        return self.acquired

    async def release(self) -> None:
        self.owner.released.append(self.name)


class FakeRedisClient:
    def __init__(self, acquired: bool = True) -> None:
        self.acquired = acquired
        self.requested: list[tuple[str, float, float]] = []
        self.released: list[str] = []

    def lock(self, name: str, timeout: float, blocking_timeout: float) -> FakeRedisLockHandle:
        self.requested.append((name, timeout, blocking_timeout))
        return FakeRedisLockHandle(self, name, self.acquired)


@pytest.mark.asyncio
async def test_redis_lock_namespaces_key_and_releases() -> None:
    lock = locks_module.RedisKeyedLock(
        redis_url="redis://redis:6379/0",
        namespace="booking_lock",
        lease_seconds=30.0,
        blocking_timeout_seconds=5.0,
    )
    client = FakeRedisClient()
    lock._client = client

    async with lock.hold("tutor:42"):
        assert client.released == []

    assert client.requested == [("booking_lock:tutor:42", 30.0, 5.0)]
    assert client.released == ["booking_lock:tutor:42"]


@pytest.mark.asyncio
async def test_redis_lock_raises_timeout_when_not_acquired() -> None:
    lock = locks_module.RedisKeyedLock(
        redis_url="redis://redis:6379/0",
        namespace="booking_lock",
        lease_seconds=30.0,
        blocking_timeout_seconds=0.1,
    )
    client = FakeRedisClient(acquired=False)
    lock._client = client

    with pytest.raises(TimeoutError):
        async with lock.hold("tutor:42"):
            pass

    assert client.released == []
