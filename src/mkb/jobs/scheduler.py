"""
mkb.jobs.scheduler

Periodic job scheduler.

Responsibilities:
- Enqueue token refresh, killmail fetch and killmail resolve jobs on fixed intervals.
- Fire each job once immediately at startup.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from mkb.jobs.processor import (
    FetchKillmails,
    Job,
    JobQueueFull,
    Processor,
    RefreshTokens,
    ResolveKillmails,
)
from mkb.observability.logging import get_logger
from mkb.settings import Settings

log = get_logger(__name__)


class Scheduler:
    def __init__(self, *, processor: Processor, settings: Settings) -> None:
        self._processor = processor
        self._schedule: list[tuple[float, Callable[[], Job]]] = [
            (settings.refresh_interval_seconds, RefreshTokens),
            (settings.fetch_interval_seconds, FetchKillmails),
            (settings.resolve_interval_seconds, ResolveKillmails),
        ]
        self._tasks: list[asyncio.Task[None]] = []

    def start(self) -> None:
        if self._tasks:
            return
        for interval, make_job in self._schedule:
            self._tasks.append(
                asyncio.create_task(
                    self._every(interval, make_job), name=f"mkb-schedule-{make_job.__name__}"
                )
            )
        log.info("scheduler_started", jobs=[f.__name__ for _, f in self._schedule])

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        log.info("scheduler_stopped")

    async def _every(self, interval: float, make_job: Callable[[], Job]) -> None:
        while True:
            try:
                self._processor.enqueue(make_job())
            except JobQueueFull:
                log.warning("scheduled_job_dropped", job=make_job.__name__)
            await asyncio.sleep(interval)
