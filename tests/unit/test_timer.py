"""Tests for the in-process and Redis-backed delayed task services."""

import asyncio
import time

import fakeredis
import pytest
import pytest_asyncio

from src.infrastructure.timer import AsyncioTimerService, RedisTimerService


class Recorder:
    def __init__(self):
        self.calls = []
        self.fired = asyncio.Event()

    async def __call__(self, **payload):
        self.calls.append(payload)
        self.fired.set()


class TestAsyncioTimerService:

    async def test_fires_registered_task_with_payload(self):
        timer = AsyncioTimerService()
        recorder = Recorder()
        timer.register("publish_post", recorder)

        await timer.schedule(0.01, "publish_post", {"post_id": "abc"})
        await asyncio.wait_for(recorder.fired.wait(), timeout=1)
        await timer.stop()

        assert recorder.calls == [{"post_id": "abc"}]
        assert timer.pending_count == 0

    async def test_cancelled_task_never_fires(self):
        timer = AsyncioTimerService()
        recorder = Recorder()
        timer.register("publish_post", recorder)

        handle = await timer.schedule(0.05, "publish_post", {"post_id": "abc"})
        await timer.cancel(handle)
        await asyncio.sleep(0.1)

        assert recorder.calls == []

    async def test_cancel_is_idempotent_and_ignores_unknown_handles(self):
        timer = AsyncioTimerService()
        handle = await timer.schedule(10, "publish_post", {})
        await timer.cancel(handle)
        await timer.cancel(handle)
        await timer.cancel("never-issued")
        assert timer.pending_count == 0

    async def test_failing_task_does_not_escape(self):
        timer = AsyncioTimerService()
        done = asyncio.Event()

        async def boom(**payload):
            done.set()
            raise RuntimeError("boom")

        timer.register("boom", boom)
        await timer.schedule(0, "boom", {})
        await asyncio.wait_for(done.wait(), timeout=1)
        await timer.stop()

    async def test_stop_cancels_pending_timers(self):
        timer = AsyncioTimerService()
        recorder = Recorder()
        timer.register("publish_post", recorder)
        await timer.schedule(0.05, "publish_post", {})

        await timer.stop()
        await asyncio.sleep(0.1)

        assert recorder.calls == []
        assert timer.pending_count == 0

    async def test_is_pending_tracks_armed_timers(self):
        timer = AsyncioTimerService()
        timer.register("publish_post", Recorder())
        handle = await timer.schedule(10, "publish_post", {})

        assert await timer.is_pending(handle)
        await timer.cancel(handle)
        assert not await timer.is_pending(handle)


@pytest_asyncio.fixture
async def redis_client():
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def redis_timer(redis_client):
    return RedisTimerService(client=redis_client, prefix="test-timer", poll_interval=0.01)


class TestRedisTimerService:

    async def test_runs_due_tasks_once(self, redis_timer):
        recorder = Recorder()
        redis_timer.register("publish_post", recorder)
        await redis_timer.schedule(0, "publish_post", {"post_id": "abc"})

        assert await redis_timer.run_due() == 1
        assert await redis_timer.run_due() == 0
        await redis_timer.join()
        assert recorder.calls == [{"post_id": "abc"}]

    async def test_future_tasks_wait(self, redis_timer):
        recorder = Recorder()
        redis_timer.register("publish_post", recorder)
        await redis_timer.schedule(60, "publish_post", {"post_id": "abc"})

        assert await redis_timer.run_due() == 0
        assert await redis_timer.run_due(now=time.time() + 61) == 1
        await redis_timer.join()
        assert recorder.calls == [{"post_id": "abc"}]

    async def test_cancel_removes_task_and_payload(self, redis_timer, redis_client):
        recorder = Recorder()
        redis_timer.register("publish_post", recorder)
        handle = await redis_timer.schedule(0, "publish_post", {"post_id": "abc"})

        await redis_timer.cancel(handle)
        await redis_timer.cancel(handle)

        assert await redis_timer.run_due() == 0
        assert recorder.calls == []
        assert await redis_client.exists(f"test-timer:task:{handle}") == 0

    async def test_handles_survive_a_new_service_instance(self, redis_client):
        first = RedisTimerService(client=redis_client, prefix="test-timer")
        await first.schedule(0, "publish_post", {"post_id": "abc"})

        restarted = RedisTimerService(client=redis_client, prefix="test-timer")
        recorder = Recorder()
        restarted.register("publish_post", recorder)

        assert await restarted.run_due() == 1
        await restarted.join()
        assert recorder.calls == [{"post_id": "abc"}]

    async def test_two_pollers_dispatch_each_handle_once(self, redis_client):
        recorder = Recorder()
        pollers = [RedisTimerService(client=redis_client, prefix="test-timer") for _ in range(2)]
        for poller in pollers:
            poller.register("publish_post", recorder)
        for i in range(5):
            await pollers[0].schedule(0, "publish_post", {"post_id": str(i)})

        fired = await asyncio.gather(*(poller.run_due() for poller in pollers))
        for poller in pollers:
            await poller.join()

        assert sum(fired) == 5
        assert sorted(call["post_id"] for call in recorder.calls) == ["0", "1", "2", "3", "4"]

    async def test_background_poller_fires_tasks(self, redis_timer):
        recorder = Recorder()
        redis_timer.register("publish_post", recorder)

        await redis_timer.start()
        await redis_timer.schedule(0, "publish_post", {"post_id": "abc"})
        await asyncio.wait_for(recorder.fired.wait(), timeout=1)
        await redis_timer.stop()

        assert recorder.calls == [{"post_id": "abc"}]

    async def test_unknown_task_is_dropped(self, redis_timer):
        await redis_timer.schedule(0, "not_registered", {})
        assert await redis_timer.run_due() == 1
        assert await redis_timer.run_due() == 0
        await redis_timer.join()

    async def test_slow_task_does_not_hold_up_the_rest(self, redis_timer):
        release = asyncio.Event()
        recorder = Recorder()

        async def slow(**payload):
            await release.wait()

        redis_timer.register("slow", slow)
        redis_timer.register("publish_post", recorder)
        await redis_timer.schedule(0, "slow", {})
        await redis_timer.schedule(0, "publish_post", {"post_id": "abc"})

        assert await asyncio.wait_for(redis_timer.run_due(), timeout=1) == 2
        await asyncio.wait_for(recorder.fired.wait(), timeout=1)

        release.set()
        await redis_timer.join()
        assert recorder.calls == [{"post_id": "abc"}]

    async def test_is_pending_until_claimed(self, redis_timer):
        redis_timer.register("publish_post", Recorder())
        handle = await redis_timer.schedule(0, "publish_post", {})
        cancelled = await redis_timer.schedule(0, "publish_post", {})
        await redis_timer.cancel(cancelled)

        assert await redis_timer.is_pending(handle)
        assert not await redis_timer.is_pending(cancelled)
        assert not await redis_timer.is_pending("never-issued")

        await redis_timer.run_due()
        await redis_timer.join()
        assert not await redis_timer.is_pending(handle)
