"""
mkb.api.routers.auth

EVE SSO login endpoints.

Responsibilities:
- Start the OAuth2 authorization-code flow with a state nonce stored in a cookie.
- Handle the SSO callback: check state, exchange the code, queue the user save.
"""

from __future__ import annotations

from html import escape

from fastapi import APIRouter, Cookie, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse, PlainTextResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_502_BAD_GATEWAY,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from mkb.api.deps import processor_dep, settings_dep, sso_dep
from mkb.esi.errors import EsiError
from mkb.esi.sso import EveSso
from mkb.jobs.processor import JobQueueFull, Processor, SaveUser
from mkb.observability.logging import get_logger
from mkb.settings import Settings

log = get_logger(__name__)

router = APIRouter(tags=["auth"])

STATE_COOKIE = "mkb_state"


@router.get("/", response_class=PlainTextResponse)
async def index() -> str:
    return "Hello, World!"


@router.get("/auth", response_class=HTMLResponse)
async def auth(
    sso: EveSso = Depends(sso_dep),
    settings: Settings = Depends(settings_dep),
) -> HTMLResponse:
    url, state = sso.build_auth_url()
    response = HTMLResponse(f'<a href="{escape(url)}">Authenticate with EVE Online</a>')
    response.set_cookie(
        STATE_COOKIE,
        state,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.env == "prod",
        max_age=10 * 60,
    )
    return response


@router.get("/auth/callback")
async def callback(
    code: str | None = Query(default=None),
    state: str | None = Query(default=None),
    state_cookie: str | None = Cookie(default=None, alias=STATE_COOKIE),
    sso: EveSso = Depends(sso_dep),
    processor: Processor = Depends(processor_dep),
) -> dict[str, int]:
    if not state_cookie:
        raise HTTPException(status_code=HTTP_400_BAD_REQUEST, detail="Missing state cookie")
    if state != state_cookie:
        raise HTTPException(status_code=HTTP_400_BAD_REQUEST, detail="Invalid state")
    if not code:
        raise HTTPException(status_code=HTTP_400_BAD_REQUEST, detail="Missing authorization code")

    try:
        tokens = await sso.exchange_code(code)
    except EsiError as e:
        log.error("token_exchange_failed", error=str(e))
        raise HTTPException(status_code=HTTP_502_BAD_GATEWAY, detail="Token exchange failed") from e

    try:
        processor.enqueue(SaveUser(tokens=tokens))
    except JobQueueFull as e:
        log.error("enqueue_failed", job="SaveUser", character_id=tokens.character_id)
        raise HTTPException(status_code=HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e

    log.info("character_authenticated", character_id=tokens.character_id)
    return {"character_id": tokens.character_id}
