"""
mkb.api.routers.killmails

Read-only killmail endpoints.

Responsibilities:
- List killmails newest first, optionally filtered by processing status.
- Return one killmail with its participants and their sides.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_404_NOT_FOUND

from mkb.api.deps import db_session
from mkb.db.models import Killmail, KillmailStatus
from mkb.db.repositories.killmails import KillmailRepo

router = APIRouter(prefix="/killmails", tags=["killmails"])


class ParticipantResponse(BaseModel):
    entity_id: int
    type: str
    name: str
    side: str


class KillmailResponse(BaseModel):
    killmail_id: int
    killmail_hash: str
    status: str
    participants: list[ParticipantResponse]


def _to_response(km: Killmail) -> KillmailResponse:
    return KillmailResponse(
        killmail_id=km.killmail_id,
        killmail_hash=km.killmail_hash,
        status=km.status,
        participants=[
            ParticipantResponse(
                entity_id=link.entity.id,
                type=link.entity.type,
                name=link.entity.name,
                side=link.entity_side,
            )
            for link in sorted(km.participants, key=lambda p: (p.entity_side, p.entity_id))
        ],
    )


@router.get("", response_model=list[KillmailResponse])
async def list_killmails(
    status: KillmailStatus | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    session: AsyncSession = Depends(db_session),
) -> list[KillmailResponse]:
    # Newest killmail ids first.
    rows = await KillmailRepo(session).list_by_status(status, limit=limit, with_participants=True)
    return [_to_response(km) for km in rows]


@router.get("/{killmail_id}", response_model=KillmailResponse)
async def get_killmail(
    killmail_id: int,
    session: AsyncSession = Depends(db_session),
) -> KillmailResponse:
    km = await KillmailRepo(session).get_by_killmail_id(killmail_id, with_participants=True)
    if km is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Killmail not found")
    return _to_response(km)
