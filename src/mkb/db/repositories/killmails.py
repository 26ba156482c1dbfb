"""
mkb.db.repositories.killmails

Repository for `Killmail` rows.

Responsibilities:
- Store killmail references once, as pending.
- List and look up killmails, optionally with their participants eager-loaded.
- Move killmails between processing states.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from mkb.db.models import Killmail, KillmailEntity, KillmailStatus


class KillmailRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add_if_missing(self, *, killmail_id: int, killmail_hash: str) -> bool:
        """Store a killmail reference as pending. Returns False if it was already known."""

        if await self.get_by_killmail_id(killmail_id) is not None:
            return False
        self._session.add(Killmail(killmail_id=killmail_id, killmail_hash=killmail_hash))
        await self._session.flush()
        return True

    async def get_by_killmail_id(
        self, killmail_id: int, *, with_participants: bool = False
    ) -> Killmail | None:
        stmt = select(Killmail).where(Killmail.killmail_id == killmail_id)
        if with_participants:
            stmt = stmt.options(
                selectinload(Killmail.participants).selectinload(KillmailEntity.entity)
            )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list_by_status(
        self,
        status: KillmailStatus | None = None,
        *,
        limit: int = 100,
        with_participants: bool = False,
    ) -> list[Killmail]:
        stmt = select(Killmail).order_by(Killmail.killmail_id.desc()).limit(limit)
        if status is not None:
            stmt = stmt.where(Killmail.status == status.value)
        if with_participants:
            stmt = stmt.options(
                selectinload(Killmail.participants).selectinload(KillmailEntity.entity)
            )
        return list((await self._session.execute(stmt)).scalars().all())

    async def set_status(self, killmail_id: int, status: KillmailStatus) -> None:
        km = await self.get_by_killmail_id(killmail_id)
        if km is None:
            return
        km.status = status.value
        await self._session.flush()
