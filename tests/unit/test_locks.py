import fakeredis
import pytest

from kobansync.locks import InMemoryLock, RedisLock


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


@pytest.mark.asyncio
async def test_inmemory_lock_expires_after_ttl():
    clock = FakeClock()
    lock = InMemoryLock(clock=clock)

    assert await lock.acquire("product:5", 3)
    assert not await lock.acquire("product:5", 3)
    assert await lock.acquire("product:6", 3)

    clock.now += 3.5
    assert await lock.acquire("product:5", 3)


@pytest.mark.asyncio
async def test_redis_lock_is_shared_between_instances():
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    first = RedisLock(client=client)
    second = RedisLock(client=client)

    assert await first.acquire("product:5", 3)
    assert not await second.acquire("product:5", 3)
    assert 0 < await client.pttl("kobansync:lock:product:5") <= 3000


@pytest.mark.asyncio
async def test_inmemory_lock_forgets_expired_keys():
    clock = FakeClock()
    lock = InMemoryLock(clock=clock)
    for product_id in range(10):
        assert await lock.acquire(f"product:{product_id}", 3)

    clock.now += 5
    assert await lock.acquire("product:99", 3)

    assert list(lock._expiries) == ["product:99"]
