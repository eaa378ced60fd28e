from unittest.mock import AsyncMock

import pytest

from app.platform.utils.cooldown import CooldownStore, InMemoryCooldownStore, RedisCooldownStore


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.mark.asyncio
async def test_window_blocks_then_allows():
    clock = FakeClock()
    store = InMemoryCooldownStore(clock=clock)

    assert await store.remaining("login:a@example.com", 5) == 0
    await store.touch("login:a@example.com", 10)

    clock.advance(2)
    assert await store.remaining("login:a@example.com", 5) == 3

    clock.advance(3)
    assert await store.remaining("login:a@example.com", 5) == 0


@pytest.mark.asyncio
async def test_partial_seconds_round_up():
    clock = FakeClock()
    store = InMemoryCooldownStore(clock=clock)
    await store.touch("k", 10)

    clock.advance(4.5)

    assert await store.remaining("k", 5) == 1


@pytest.mark.asyncio
async def test_entries_expire_after_ttl():
    clock = FakeClock()
    store = InMemoryCooldownStore(clock=clock)
    await store.touch("k", 10)

    clock.advance(10)

    assert await store.last_touched("k") is None
    assert len(store) == 0


@pytest.mark.asyncio
async def test_keys_are_independent():
    store = InMemoryCooldownStore(clock=FakeClock())
    await store.touch("login:a@example.com", 10)

    assert await store.remaining("login:b@example.com", 5) == 0
    assert await store.remaining("enable2fa:a@example.com", 10) == 0

    await store.clear("login:a@example.com")
    assert await store.remaining("login:a@example.com", 5) == 0


@pytest.mark.asyncio
async def test_redis_store_uses_key_expiry():
    redis = AsyncMock()
    redis.get.return_value = None
    store = RedisCooldownStore(redis, prefix="cd:")

    assert await store.remaining("login:a@example.com", 5) == 0
    redis.get.assert_awaited_once_with("cd:login:a@example.com")

    await store.touch("login:a@example.com", 10)
    args, kwargs = redis.set.call_args
    assert args[0] == "cd:login:a@example.com"
    assert kwargs == {"ex": 10}


def test_base_store_cannot_be_instantiated():
    with pytest.raises(TypeError):
        CooldownStore()


@pytest.mark.asyncio
async def test_subclass_only_needs_storage_methods():
    class DictStore(CooldownStore):
        def __init__(self):
            self.entries = {}

        def now(self) -> float:
            return 100.0

        async def last_touched(self, key):
            return self.entries.get(key)

        async def touch(self, key, ttl_seconds):
            self.entries[key] = self.now()

        async def clear(self, key):
            self.entries.pop(key, None)

    store = DictStore()
    await store.touch("k", 10)

    assert await store.remaining("k", 5) == 5
