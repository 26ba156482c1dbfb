"""
mkb.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings and DB sessions.
- Expose the shared SSO client and job processor created at startup.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mkb.esi.sso import EveSso
from mkb.jobs.processor import Processor
from mkb.settings import Settings


def settings_dep(request: Request) -> Settings:
    # The app is built with an explicit Settings instance; prefer it over env parsing.
    return request.app.state.settings  # type: ignore[attr-defined]


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


def sso_dep(request: Request) -> EveSso:
    return request.app.state.sso  # type: ignore[attr-defined]


def processor_dep(request: Request) -> Processor:
    return request.app.state.processor  # type: ignore[attr-defined]
