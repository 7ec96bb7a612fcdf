"""Job queue tests."""

from datetime import datetime, timedelta, timezone

import fakeredis
import pytest

from kobansync.contracts import Job
from kobansync.transports import InMemoryJobQueue
from kobansync.transports.redis import RedisJobQueue


@pytest.fixture(params=["inmemory", "redis"])
def job_queue(request):
    if request.param == "inmemory":
        return InMemoryJobQueue(poll_interval=0.01)
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    return RedisJobQueue(client=client, poll_interval=0.01)


@pytest.mark.asyncio
async def test_enqueue_and_consume(job_queue):
    await job_queue.enqueue_async("kobansync.test", {"order_id": 1})

    received = []
    async for job in job_queue.subscribe(["kobansync.test"], lifespan=1):
        received.append(job)
        await job_queue.ack(job)
        break

    assert [j.payload for j in received] == [{"order_id": 1}]
    assert await job_queue.pending("kobansync.test") == []


@pytest.mark.asyncio
async def test_future_jobs_are_not_delivered_early(job_queue):
    run_at = datetime.now(timezone.utc) + timedelta(minutes=1)
    await job_queue.schedule_at(run_at, "kobansync.test", {"order_id": 1, "attempt": 1})

    received = [job async for job in job_queue.subscribe(["kobansync.test"], lifespan=0.05)]

    assert received == []
    assert await job_queue.has_scheduled("kobansync.test")
    next_run = await job_queue.next_scheduled("kobansync.test", {"order_id": 1})
    assert abs((next_run - run_at).total_seconds()) < 0.001
    assert await job_queue.next_scheduled("kobansync.test", {"order_id": 2}) is None


@pytest.mark.asyncio
async def test_jobs_come_out_in_run_order(job_queue):
    now = datetime.now(timezone.utc)
    await job_queue.schedule_at(now - timedelta(seconds=1), "kobansync.test", {"n": 2})
    await job_queue.schedule_at(now - timedelta(seconds=5), "kobansync.test", {"n": 1})

    pending = await job_queue.pending("kobansync.test")

    assert [j.payload["n"] for j in pending] == [1, 2]


@pytest.mark.asyncio
async def test_unschedule_all_only_drops_named_jobs(job_queue):
    await job_queue.enqueue_async("kobansync.a", {})
    await job_queue.enqueue_async("kobansync.a", {})
    await job_queue.enqueue_async("kobansync.b", {})

    assert await job_queue.unschedule_all("kobansync.a") == 2
    assert not await job_queue.has_scheduled("kobansync.a")
    assert await job_queue.has_scheduled("kobansync.b")


@pytest.mark.asyncio
async def test_redis_job_is_claimed_once():
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    first = RedisJobQueue(client=client)
    second = RedisJobQueue(client=client)
    await first.enqueue_async("kobansync.test", {"order_id": 1})

    claimed = [await first.pop_due(["kobansync.test"]), await second.pop_due(["kobansync.test"])]

    assert claimed[0] is not None
    assert claimed[1] is None


def test_job_json_round_trip_keeps_run_at():
    job = Job(job_name="kobansync.test", payload={"order_id": 1})

    assert Job.from_json(job.to_json()) == job
    assert job.matches({"order_id": 1})
    assert not job.matches({"order_id": 2})
    assert job.matches(None)
