"""Timer service for recurring and delayed jobs on the asyncio loop"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional, Set

logger = logging.getLogger(__name__)


class TimerHandle:
    """Cancel handle returned for every scheduled job"""

    def __init__(self, name: str, task: "asyncio.Task[None]", on_done: Callable[["TimerHandle"], None]):
        self.name = name
        self._task = task
        task.add_done_callback(lambda _: on_done(self))

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled()

    @property
    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        self._task.cancel()

    async def wait(self) -> None:
        """Wait for the job to stop; cancellation counts as stopping"""
        try:
            await self._task
        except asyncio.CancelledError:
            pass


class TimerService:
    """
    Schedules callbacks on the running event loop.

    Sync callbacks run in a worker thread so database work does not block the
    loop. A failing callback is logged and the schedule carries on.
    """

    def __init__(self) -> None:
        self._handles: Set[TimerHandle] = set()

    async def _invoke(self, name: str, callback: Callable[[], Any]) -> None:
        try:
            if inspect.iscoroutinefunction(callback):
                await callback()
            else:
                await asyncio.to_thread(callback)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Scheduled job {name} failed: {e}", extra={"job": name})

    def _track(self, name: str, coro) -> TimerHandle:
        handle = TimerHandle(name, asyncio.get_running_loop().create_task(coro), self._handles.discard)
        self._handles.add(handle)
        return handle

    def schedule_every(
        self,
        interval_seconds: float,
        callback: Callable[[], Any],
        name: Optional[str] = None,
        run_immediately: bool = False,
    ) -> TimerHandle:
        """Run callback every interval_seconds until cancelled"""
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        job_name = name or getattr(callback, "__name__", "job")

        async def loop() -> None:
            if not run_immediately:
                await asyncio.sleep(interval_seconds)
            while True:
                await self._invoke(job_name, callback)
                await asyncio.sleep(interval_seconds)

        logger.info("Scheduled recurring job", extra={"job": job_name, "interval_seconds": interval_seconds})
        return self._track(job_name, loop())

    def schedule_once(self, delay_seconds: float, callback: Callable[[], Any], name: Optional[str] = None) -> TimerHandle:
        """Run callback once after delay_seconds unless cancelled first"""
        job_name = name or getattr(callback, "__name__", "job")

        async def once() -> None:
            await asyncio.sleep(max(delay_seconds, 0))
            await self._invoke(job_name, callback)

        return self._track(job_name, once())

    @property
    def active_count(self) -> int:
        return len(self._handles)

    async def cancel_all(self) -> None:
        """Cancel every pending job and wait for them to stop"""
        handles = list(self._handles)
        for handle in handles:
            handle.cancel()
        for handle in handles:
            await handle.wait()
