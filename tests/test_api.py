"""
tests.test_api

HTTP surface tests: the app boots with a real SQLite database and talks to the
fake SSO/ESI through the injected transport.

Responsibilities:
- Health/readiness probes.
- SSO login and callback (state cookie handling, token exchange failures).
- Job triggers and the killmail read endpoints.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from fakes import killmail_payload
from mkb.api.app import create_app
from mkb.api.routers.auth import STATE_COOKIE
from mkb.db.models import EntitySide, EntityType, KillmailStatus
from mkb.db.repositories.entities import EntityRepo
from mkb.db.repositories.killmails import KillmailRepo
from mkb.db.repositories.users import UserRepo


@pytest_asyncio.fixture
async def app(settings, transport) -> AsyncIterator[FastAPI]:
    app = create_app(settings=settings, transport=transport)
    # httpx 0.28 ASGITransport does not manage lifespan automatically; do it explicitly.
    await app.router.startup()
    try:
        yield app
    finally:
        await app.router.shutdown()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.mark.asyncio
async def test_health_endpoints(client) -> None:
    r = await client.get("/healthz")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"

    r = await client.get("/readyz")
    assert r.status_code == 200
    assert r.json() == {"status": "ready", "queued_jobs": 0}
    assert r.headers["x-request-id"]


@pytest.mark.asyncio
async def test_index(client) -> None:
    r = await client.get("/")
    assert r.status_code == 200
    assert r.text == "Hello, World!"


@pytest.mark.asyncio
async def test_auth_sets_state_cookie(client) -> None:
    r = await client.get("/auth")

    assert r.status_code == 200
    state = r.cookies[STATE_COOKIE]
    assert "https://login.eveonline.com/v2/oauth/authorize?" in r.text
    assert f"state={state}" in r.text
    assert "httponly" in r.headers["set-cookie"].lower()


@pytest.mark.asyncio
async def test_callback_requires_state_cookie(client) -> None:
    r = await client.get("/auth/callback", params={"code": "c", "state": "s"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Missing state cookie"


@pytest.mark.asyncio
async def test_callback_rejects_mismatched_state(client) -> None:
    await client.get("/auth")

    r = await client.get("/auth/callback", params={"code": "c", "state": "forged"})

    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid state"


@pytest.mark.asyncio
async def test_callback_requires_code(client) -> None:
    state = (await client.get("/auth")).cookies[STATE_COOKIE]

    r = await client.get("/auth/callback", params={"state": state})

    assert r.status_code == 400
    assert r.json()["detail"] == "Missing authorization code"


@pytest.mark.asyncio
async def test_callback_saves_user(app, client, fake_eve) -> None:
    fake_eve.codes["login-code"] = 2112000001
    state = (await client.get("/auth")).cookies[STATE_COOKIE]

    r = await client.get("/auth/callback", params={"code": "login-code", "state": state})

    assert r.status_code == 200
    assert r.json() == {"character_id": 2112000001}

    await app.state.processor.join()
    async with app.state.sessionmaker() as session:
        user = await UserRepo(session).get_by_character_id(2112000001)
    assert user is not None
    assert user.refresh_token in fake_eve.refresh_tokens


@pytest.mark.asyncio
async def test_callback_token_exchange_failure(client) -> None:
    state = (await client.get("/auth")).cookies[STATE_COOKIE]

    # Unknown code: the fake SSO answers 400 invalid_grant.
    r = await client.get("/auth/callback", params={"code": "nope", "state": state})

    assert r.status_code == 502


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("path", "job"),
    [
        ("/jobs/refresh", "RefreshTokens"),
        ("/jobs/killmails", "FetchKillmails"),
        ("/jobs/resolve", "ResolveKillmails"),
    ],
)
async def test_job_triggers(app, client, path, job) -> None:
    r = await client.post(path)

    assert r.status_code == 202
    assert r.json() == {"status": "queued", "job": job}
    await app.state.processor.join()


@pytest.mark.asyncio
async def test_fetch_then_resolve_via_jobs(app, client, fake_eve) -> None:
    fake_eve.codes["login-code"] = 2112000001
    fake_eve.recent[2112000001] = [{"killmail_id": 130000001, "killmail_hash": "aaa"}]
    fake_eve.killmails[(130000001, "aaa")] = killmail_payload(130000001)
    state = (await client.get("/auth")).cookies[STATE_COOKIE]
    await client.get("/auth/callback", params={"code": "login-code", "state": state})

    await client.post("/jobs/killmails")
    await client.post("/jobs/resolve")
    await app.state.processor.join()

    r = await client.get("/killmails/130000001")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "resolved"
    location = [p for p in body["participants"] if p["side"] == "location"]
    assert location == [
        {"entity_id": 30000142, "type": "solar_system", "name": "", "side": "location"}
    ]


@pytest.mark.asyncio
async def test_list_killmails_filters_by_status(app, client) -> None:
    async with app.state.sessionmaker() as session:
        killmails = KillmailRepo(session)
        await killmails.add_if_missing(killmail_id=1, killmail_hash="a")
        await killmails.add_if_missing(killmail_id=2, killmail_hash="b")
        await killmails.set_status(2, KillmailStatus.resolved)
        km = await killmails.get_by_killmail_id(2)
        assert km is not None
        entities = EntityRepo(session)
        await entities.add_if_missing(entity_id=587, entity_type=EntityType.ship_type)
        await entities.link(killmail_pk=km.id, entity_id=587, side=EntitySide.victim)
        await session.commit()

    r = await client.get("/killmails")
    assert [k["killmail_id"] for k in r.json()] == [2, 1]

    r = await client.get("/killmails", params={"status": "resolved"})
    assert r.status_code == 200
    [only] = r.json()
    assert only["killmail_id"] == 2
    assert only["participants"] == [
        {"entity_id": 587, "type": "ship_type", "name": "", "side": "victim"}
    ]


@pytest.mark.asyncio
async def test_list_killmails_rejects_unknown_status(client) -> None:
    r = await client.get("/killmails", params={"status": "exploded"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_get_killmail_not_found(client) -> None:
    r = await client.get("/killmails/404")
    assert r.status_code == 404
    assert r.json()["detail"] == "Killmail not found"
