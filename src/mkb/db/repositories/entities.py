"""
mkb.db.repositories.entities

Repository for `Entity` and `KillmailEntity` rows.

Responsibilities:
- Insert participants once per ESI id (existing rows are left untouched).
- Link participants to killmails idempotently.
"""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mkb.db.models import Entity, EntitySide, EntityType, KillmailEntity


class EntityRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add_if_missing(
        self, *, entity_id: int, entity_type: EntityType, name: str = ""
    ) -> Entity:
        existing = await self._session.get(Entity, entity_id)
        if existing is not None:
            return existing
        entity = Entity(id=entity_id, type=entity_type.value, name=name)
        self._session.add(entity)
        await self._session.flush()
        return entity

    async def link(
        self, *, killmail_pk: uuid.UUID, entity_id: int, side: EntitySide
    ) -> KillmailEntity:
        stmt = select(KillmailEntity).where(
            KillmailEntity.killmail_id == killmail_pk,
            KillmailEntity.entity_id == entity_id,
            KillmailEntity.entity_side == side.value,
        )
        existing = (await self._session.execute(stmt)).scalar_one_or_none()
        if existing is not None:
            return existing
        row = KillmailEntity(killmail_id=killmail_pk, entity_id=entity_id, entity_side=side.value)
        self._session.add(row)
        await self._session.flush()
        return row

    async def list_for_killmail(self, killmail_pk: uuid.UUID) -> list[tuple[Entity, str]]:
        stmt = (
            select(Entity, KillmailEntity.entity_side)
            .join(KillmailEntity, KillmailEntity.entity_id == Entity.id)
            .where(KillmailEntity.killmail_id == killmail_pk)
            .order_by(KillmailEntity.entity_side, Entity.id)
        )
        return [(e, side) for e, side in (await self._session.execute(stmt)).all()]
