# src/infrastructure/timer.py
"""
Delayed-task primitive used to fire a post's publish action at its scheduled time.

The application only ever talks to TimerService:
    schedule(delay_seconds, task_name, payload) -> handle
    cancel(handle)      # idempotent, no-op for fired or unknown handles
    is_pending(handle)  # still waiting to fire

Task callables are registered by name so that a handle can be persisted
outside the process (RedisTimerService) and still be dispatched later.
"""
import os
import json
import time
import uuid
import asyncio
from typing import Awaitable, Callable, Dict, Optional, Set

import structlog
import redis.asyncio as aioredis

logger = structlog.get_logger(__name__)

TIMER_BACKEND = os.getenv("TIMER_BACKEND", "memory").lower()
TIMER_POLL_INTERVAL = float(os.getenv("TIMER_POLL_INTERVAL", "1.0"))
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

TaskFn = Callable[..., Awaitable[None]]


class TimerService:
    """Base class; subclasses implement schedule/cancel/is_pending and optionally start/stop."""

    is_durable = False

    def __init__(self):
        self._tasks: Dict[str, TaskFn] = {}
        self._running: Set[asyncio.Task] = set()

    def register(self, name: str, fn: TaskFn) -> None:
        self._tasks[name] = fn

    async def schedule(self, delay_seconds: float, task_name: str, payload: dict) -> str:
        raise NotImplementedError("Subclasses must implement schedule method")

    async def cancel(self, handle: str) -> None:
        raise NotImplementedError("Subclasses must implement cancel method")

    async def is_pending(self, handle: str) -> bool:
        raise NotImplementedError("Subclasses must implement is_pending method")

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        await self.join()

    async def join(self) -> None:
        """Wait for every task that has already fired to finish."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    def _spawn(self, handle: str, task_name: str, payload: dict) -> asyncio.Task:
        task = asyncio.ensure_future(self._dispatch(handle, task_name, payload))
        self._running.add(task)
        task.add_done_callback(self._running.discard)
        return task

    async def _dispatch(self, handle: str, task_name: str, payload: dict) -> None:
        fn = self._tasks.get(task_name)
        if fn is None:
            logger.error("timer_unknown_task", handle=handle, task=task_name)
            return
        logger.info("timer_fired", handle=handle, task=task_name)
        try:
            await fn(**payload)
        except Exception as e:
            # nobody awaits a fired timer; the task itself owns its error reporting
            logger.exception("timer_task_failed", handle=handle, task=task_name, error=str(e))


class AsyncioTimerService(TimerService):
    """
    In-process timers on the running event loop. Handles do not survive a restart;
    the startup hook re-arms scheduled posts for this backend.
    """

    def __init__(self):
        super().__init__()
        self._timers: Dict[str, asyncio.TimerHandle] = {}

    @property
    def pending_count(self) -> int:
        return len(self._timers)

    async def schedule(self, delay_seconds: float, task_name: str, payload: dict) -> str:
        handle = str(uuid.uuid4())
        loop = asyncio.get_running_loop()
        self._timers[handle] = loop.call_later(max(0.0, delay_seconds), self._fire, handle, task_name, payload)
        logger.debug("timer_scheduled", handle=handle, task=task_name, delay_seconds=delay_seconds)
        return handle

    def _fire(self, handle: str, task_name: str, payload: dict) -> None:
        self._timers.pop(handle, None)
        self._spawn(handle, task_name, payload)

    async def cancel(self, handle: str) -> None:
        timer = self._timers.pop(handle, None)
        if timer is not None:
            timer.cancel()
            logger.debug("timer_cancelled", handle=handle)

    async def is_pending(self, handle: str) -> bool:
        return handle in self._timers

    async def stop(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        await self.join()


class RedisTimerService(TimerService):
    """
    Durable timers: a sorted set of handles scored by due time plus one key per
    handle holding the task name and payload. A poller claims due handles with
    ZREM, so a handle is dispatched by exactly one poller even when several
    application instances share the same Redis.
    """

    is_durable = True

    def __init__(self, client=None, prefix: str = "timer", poll_interval: float = TIMER_POLL_INTERVAL, batch_size: int = 100):
        super().__init__()
        self.client = client or aioredis.from_url(REDIS_URL, decode_responses=True)
        self.prefix = prefix
        self.poll_interval = poll_interval
        self.batch_size = batch_size
        self._poller: Optional[asyncio.Task] = None

    @property
    def due_key(self) -> str:
        return f"{self.prefix}:due"

    def _task_key(self, handle: str) -> str:
        return f"{self.prefix}:task:{handle}"

    async def schedule(self, delay_seconds: float, task_name: str, payload: dict) -> str:
        handle = str(uuid.uuid4())
        due_at = time.time() + max(0.0, delay_seconds)
        body = json.dumps({"task": task_name, "payload": payload})
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.set(self._task_key(handle), body)
            pipe.zadd(self.due_key, {handle: due_at})
            await pipe.execute()
        logger.debug("timer_scheduled", handle=handle, task=task_name, due_at=due_at)
        return handle

    async def cancel(self, handle: str) -> None:
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.zrem(self.due_key, handle)
            pipe.delete(self._task_key(handle))
            removed, _ = await pipe.execute()
        if removed:
            logger.debug("timer_cancelled", handle=handle)

    async def is_pending(self, handle: str) -> bool:
        return await self.client.zscore(self.due_key, handle) is not None

    async def run_due(self, now: Optional[float] = None) -> int:
        """
        Claim every handle due at or before now and start its task in the background.
        Returns the number dispatched; join() waits for them.
        """
        now = time.time() if now is None else now
        handles = await self.client.zrangebyscore(self.due_key, "-inf", now, start=0, num=self.batch_size)
        fired = 0
        for handle in handles:
            if await self.client.zrem(self.due_key, handle) != 1:
                # another poller claimed it, or it was cancelled meanwhile
                continue
            raw = await self.client.get(self._task_key(handle))
            await self.client.delete(self._task_key(handle))
            if not raw:
                logger.warning("timer_payload_missing", handle=handle)
                continue
            body = json.loads(raw)
            self._spawn(handle, body["task"], body.get("payload") or {})
            fired += 1
        return fired

    async def _poll(self) -> None:
        while True:
            try:
                await self.run_due()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("timer_poll_failed", error=str(e))
            await asyncio.sleep(self.poll_interval)

    async def start(self) -> None:
        if self._poller is None:
            self._poller = asyncio.create_task(self._poll())
            logger.info("timer_poller_started", interval=self.poll_interval)

    async def stop(self) -> None:
        if self._poller is not None:
            self._poller.cancel()
            try:
                await self._poller
            except asyncio.CancelledError:
                pass
            self._poller = None
        await self.join()


_timer_service: Optional[TimerService] = None


def get_timer_service() -> TimerService:
    global _timer_service
    if _timer_service is None:
        if TIMER_BACKEND == "redis":
            _timer_service = RedisTimerService()
        else:
            _timer_service = AsyncioTimerService()
    return _timer_service
