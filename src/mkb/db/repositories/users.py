"""
mkb.db.repositories.users

Repository for `User` entities.

Responsibilities:
- Insert or refresh a character's SSO tokens keyed by character id.
- Select users for token refresh and killmail fetching.
- Record the last successful killmail fetch.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mkb.db.models import User


class UserRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert_tokens(
        self,
        *,
        character_id: int,
        access_token: str,
        refresh_token: str,
        expires_at: datetime,
    ) -> User:
        # Lock the row so a refresh and a re-login do not interleave token writes.
        stmt = select(User).where(User.character_id == character_id).with_for_update()
        existing = (await self._session.execute(stmt)).scalar_one_or_none()
        if existing is not None:
            existing.access_token = access_token
            existing.refresh_token = refresh_token
            existing.expires_at = expires_at
            existing.updated_at = datetime.now(tz=UTC)
            await self._session.flush()
            return existing

        user = User(
            character_id=character_id,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
        )
        self._session.add(user)
        await self._session.flush()
        return user

    async def get(self, user_id: uuid.UUID) -> User | None:
        return await self._session.get(User, user_id)

    async def get_by_character_id(self, character_id: int) -> User | None:
        stmt = select(User).where(User.character_id == character_id)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list_all(self) -> list[User]:
        stmt = select(User).order_by(User.character_id)
        return list((await self._session.execute(stmt)).scalars().all())

    async def list_expiring(self, before: datetime) -> list[User]:
        # Includes tokens that have already expired; ESI still honours their refresh token.
        stmt = select(User).where(User.expires_at < before).order_by(User.expires_at)
        return list((await self._session.execute(stmt)).scalars().all())

    async def mark_fetched(self, user_id: uuid.UUID, at: datetime) -> None:
        user = await self._session.get(User, user_id)
        if user is None:
            return
        user.last_fetched = at
        await self._session.flush()
