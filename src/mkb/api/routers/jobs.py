"""
mkb.api.routers.jobs

Manual triggers for the background jobs the scheduler runs periodically.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from starlette.status import HTTP_202_ACCEPTED, HTTP_503_SERVICE_UNAVAILABLE

from mkb.api.deps import processor_dep
from mkb.jobs.processor import (
    FetchKillmails,
    Job,
    JobQueueFull,
    Processor,
    RefreshTokens,
    ResolveKillmails,
)
from mkb.observability.logging import get_logger

log = get_logger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


def _enqueue(processor: Processor, job: Job) -> dict[str, str]:
    try:
        processor.enqueue(job)
    except JobQueueFull as e:
        log.error("enqueue_failed", job=type(job).__name__, error=str(e))
        raise HTTPException(status_code=HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e
    return {"status": "queued", "job": type(job).__name__}


@router.post("/refresh", status_code=HTTP_202_ACCEPTED)
async def trigger_refresh(processor: Processor = Depends(processor_dep)) -> dict[str, str]:
    return _enqueue(processor, RefreshTokens())


@router.post("/killmails", status_code=HTTP_202_ACCEPTED)
async def trigger_fetch(processor: Processor = Depends(processor_dep)) -> dict[str, str]:
    return _enqueue(processor, FetchKillmails())


@router.post("/resolve", status_code=HTTP_202_ACCEPTED)
async def trigger_resolve(processor: Processor = Depends(processor_dep)) -> dict[str, str]:
    return _enqueue(processor, ResolveKillmails())
