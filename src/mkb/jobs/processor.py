"""
mkb.jobs.processor

Single-consumer job processor.

Responsibilities:
- Define the job types accepted by the processor.
- Drain a bounded asyncio queue and dispatch each job to `IngestionService`.
- Keep running when a job fails; failures are logged with job context.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog

from mkb.esi.sso import TokenSet
from mkb.observability.logging import get_logger
from mkb.services.ingestion import IngestionService

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RefreshTokens:
    pass


@dataclass(frozen=True, slots=True)
class FetchKillmails:
    pass


@dataclass(frozen=True, slots=True)
class ResolveKillmails:
    pass


@dataclass(frozen=True, slots=True)
class SaveUser:
    tokens: TokenSet


@dataclass(frozen=True, slots=True)
class Stop:
    pass


Job = RefreshTokens | FetchKillmails | ResolveKillmails | SaveUser | Stop


class JobQueueFull(Exception):
    pass


class Processor:
    def __init__(self, *, service: IngestionService, queue_size: int = 100) -> None:
        self._service = service
        self._queue: asyncio.Queue[Job] = asyncio.Queue(maxsize=queue_size)
        self._task: asyncio.Task[None] | None = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def enqueue(self, job: Job) -> None:
        """Non-blocking submit used by HTTP handlers and the scheduler."""

        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull as e:
            raise JobQueueFull(f"job queue is full ({self._queue.maxsize})") from e

    def start(self) -> asyncio.Task[None]:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="mkb-processor")
        return self._task

    async def join(self) -> None:
        """Wait until every job queued so far has been handled."""

        await self._queue.join()

    async def stop(self) -> None:
        # Stop is queued behind outstanding work so in-flight jobs finish first.
        if self._task is None:
            return
        await self._queue.put(Stop())
        await self._task
        self._task = None

    async def run(self) -> None:
        log.info("processor_started")
        while True:
            job = await self._queue.get()
            try:
                if isinstance(job, Stop):
                    log.info("processor_stopping")
                    return
                await self._handle(job)
            finally:
                self._queue.task_done()

    async def _handle(self, job: Job) -> None:
        name = type(job).__name__
        structlog.contextvars.bind_contextvars(job=name)
        try:
            match job:
                case RefreshTokens():
                    refreshed = await self._service.refresh_tokens()
                    log.info("job_done", refreshed=refreshed)
                case FetchKillmails():
                    created = await self._service.fetch_killmails()
                    log.info("job_done", created=created)
                case ResolveKillmails():
                    result = await self._service.resolve_killmails()
                    log.info(
                        "job_done",
                        resolved=result.resolved,
                        failed=result.failed,
                        deferred=result.deferred,
                    )
                case SaveUser(tokens=tokens):
                    await self._service.save_user(tokens)
        except Exception:
            # One bad job must not take the processor down.
            log.exception("job_failed")
        finally:
            structlog.contextvars.unbind_contextvars("job")
