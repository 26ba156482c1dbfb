"""
tests.conftest

Shared fixtures: an isolated SQLite database per test and a fake EVE SSO/ESI
served through `httpx.MockTransport`.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from alembic import command
from alembic.config import Config
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fakes import CLIENT_ID, CLIENT_SECRET, FakeEve
from mkb.db.init_db import init_db
from mkb.db.session import create_engine, create_sessionmaker
from mkb.esi.client import EsiClient
from mkb.esi.sso import EveSso, SsoConfig
from mkb.settings import Settings

ROOT = Path(__file__).resolve().parent.parent


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        env="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'mkb-test.db'}",
        esi_application_id=CLIENT_ID,
        esi_application_secret=CLIENT_SECRET,
        scheduler_enabled=False,
    )


@pytest.fixture
def fake_eve() -> FakeEve:
    return FakeEve()


@pytest.fixture
def transport(fake_eve: FakeEve) -> httpx.MockTransport:
    return httpx.MockTransport(fake_eve.handler)


@pytest_asyncio.fixture
async def session_factory(settings: Settings) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_engine(settings)
    await init_db(engine)
    try:
        yield create_sessionmaker(engine)
    finally:
        await engine.dispose()


@pytest.fixture
def alembic_cfg(settings: Settings) -> Config:
    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", settings.database_url)
    cfg.attributes["configure_logging"] = False
    return cfg


@pytest_asyncio.fixture(params=["create_all", "migrations"])
async def schema_session_factory(
    request: pytest.FixtureRequest, settings: Settings, alembic_cfg: Config
) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """The same database checks run against ORM-created and migrated schemas."""

    engine = create_engine(settings)
    if request.param == "migrations":
        # env.py drives its own event loop, so run it off this one.
        await asyncio.to_thread(command.upgrade, alembic_cfg, "head")
    else:
        await init_db(engine)
    try:
        yield create_sessionmaker(engine)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def http(transport: httpx.MockTransport) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=transport) as client:
        yield client


@pytest.fixture
def sso(settings: Settings, http: httpx.AsyncClient) -> EveSso:
    return EveSso(cfg=SsoConfig.from_settings(settings), http=http)


@pytest.fixture
def esi(settings: Settings, http: httpx.AsyncClient) -> EsiClient:
    return EsiClient(settings=settings, http=http)
