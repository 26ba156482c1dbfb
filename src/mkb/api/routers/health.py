"""
mkb.api.routers.health

Health and readiness endpoints.

Responsibilities:
- Liveness probe (`/healthz`).
- Readiness probe (`/readyz`): DB connectivity plus job queue depth.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from mkb.api.deps import db_session, processor_dep
from mkb.jobs.processor import Processor

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(
    session: AsyncSession = Depends(db_session),
    processor: Processor = Depends(processor_dep),
) -> dict[str, Any]:
    await session.execute(text("SELECT 1"))
    return {"status": "ready", "queued_jobs": processor.pending}
