"""
mkb.services.ingestion

Killboard data lifecycle service (transaction + persistence owner).

Responsibilities:
- Persist characters after SSO login and keep their tokens fresh.
- Pull each character's recent killmail references from ESI and store them as pending.
- Resolve pending killmails into entities and killmail/entity links.

ESI calls run concurrently; database writes happen afterwards in short,
sequential units of work so no session is shared between tasks.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mkb.db.models import KillmailStatus, User
from mkb.db.repositories.entities import EntityRepo
from mkb.db.repositories.killmails import KillmailRepo
from mkb.db.repositories.users import UserRepo
from mkb.db.session import session_scope
from mkb.esi.client import EsiClient, KillmailRef
from mkb.esi.errors import EsiError, EsiRequestError
from mkb.esi.killmails import extract_participants
from mkb.esi.sso import EveSso, TokenSet
from mkb.observability.logging import get_logger
from mkb.settings import Settings

log = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

# Upper bound on simultaneous ESI requests from one job.
ESI_CONCURRENCY = 10


@dataclass(frozen=True, slots=True)
class _UserSnapshot:
    # Detached copy so ESI calls never touch ORM state outside a session.
    id: uuid.UUID
    character_id: int
    access_token: str
    refresh_token: str
    expires_at: datetime
    last_fetched: datetime | None


@dataclass(frozen=True, slots=True)
class ResolveResult:
    resolved: int
    failed: int
    # Left pending after a retryable ESI error.
    deferred: int = 0


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)


class IngestionService:
    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
        sso: EveSso,
        esi: EsiClient,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings
        self._sso = sso
        self._esi = esi

    async def save_user(self, tokens: TokenSet) -> None:
        async with session_scope(self._session_factory) as session:
            await UserRepo(session).upsert_tokens(
                character_id=tokens.character_id,
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
                expires_at=tokens.expires_at,
            )
        log.info("user_saved", character_id=tokens.character_id)

    async def refresh_tokens(self, *, now: datetime | None = None) -> int:
        """Refresh every token expiring within the refresh window. Returns the success count."""

        now = now or datetime.now(tz=UTC)
        cutoff = now + timedelta(minutes=self._settings.refresh_window_minutes)
        async with session_scope(self._session_factory) as session:
            users = [_snapshot(u) for u in await UserRepo(session).list_expiring(cutoff)]
        log.debug("refreshing_characters", count=len(users))

        refreshed = 0
        # Sequential on purpose: SSO rate limits token endpoints per application.
        for user in users:
            try:
                tokens = await self._sso.refresh(user.refresh_token)
                if tokens.character_id != user.character_id:
                    log.error(
                        "token_refresh_character_mismatch",
                        character_id=user.character_id,
                        token_character_id=tokens.character_id,
                    )
                    continue
                await self.save_user(tokens)
            except (EsiError, SQLAlchemyError) as e:
                log.error("token_refresh_failed", character_id=user.character_id, error=str(e))
                continue
            refreshed += 1
            log.debug(
                "token_refreshed",
                character_id=user.character_id,
                expires_at=tokens.expires_at.isoformat(),
            )
        return refreshed

    async def fetch_killmails(self, *, now: datetime | None = None) -> int:
        """Fetch recent killmail refs for every user. Returns how many were new."""

        now = now or datetime.now(tz=UTC)
        async with session_scope(self._session_factory) as session:
            users = [_snapshot(u) for u in await UserRepo(session).list_all()]

        active: list[_UserSnapshot] = []
        for u in users:
            if _aware(u.expires_at) > now:
                active.append(u)
            else:
                log.warning("skipping_expired_token", character_id=u.character_id)
        log.debug("fetching_killmails", count=len(active))

        async def fetch(user: _UserSnapshot) -> list[KillmailRef]:
            return await self._esi.recent_killmails(
                character_id=user.character_id,
                access_token=user.access_token,
                last_fetched=user.last_fetched,
            )

        results = await _gather_bounded(fetch, active)

        created = 0
        for user, result in zip(active, results, strict=True):
            if isinstance(result, BaseException):
                log.error(
                    "killmail_fetch_failed", character_id=user.character_id, error=str(result)
                )
                continue
            async with session_scope(self._session_factory) as session:
                killmails = KillmailRepo(session)
                for ref in result:
                    if await killmails.add_if_missing(
                        killmail_id=ref.killmail_id, killmail_hash=ref.killmail_hash
                    ):
                        created += 1
                await UserRepo(session).mark_fetched(user.id, now)
            log.debug("killmails_fetched", character_id=user.character_id, count=len(result))
        return created

    async def resolve_killmails(self) -> ResolveResult:
        """Resolve a batch of pending killmails into entities and links."""

        async with session_scope(self._session_factory) as session:
            pending = [
                (km.id, km.killmail_id, km.killmail_hash)
                for km in await KillmailRepo(session).list_by_status(
                    KillmailStatus.pending, limit=self._settings.resolve_batch_size
                )
            ]
        log.debug("resolving_killmails", count=len(pending))

        async def fetch(item: tuple[uuid.UUID, int, str]) -> dict[str, Any]:
            _, killmail_id, killmail_hash = item
            return await self._esi.killmail(killmail_id=killmail_id, killmail_hash=killmail_hash)

        results = await _gather_bounded(fetch, pending)

        resolved = failed = deferred = 0
        for (killmail_pk, killmail_id, _), result in zip(pending, results, strict=True):
            if isinstance(result, EsiRequestError) and result.retryable:
                # Outage or throttling: stay pending for the next run.
                log.warning(
                    "killmail_resolve_deferred",
                    killmail_id=killmail_id,
                    status_code=result.status_code,
                    error=str(result),
                )
                deferred += 1
                continue
            if isinstance(result, BaseException):
                log.error("killmail_resolve_failed", killmail_id=killmail_id, error=str(result))
                async with session_scope(self._session_factory) as session:
                    await KillmailRepo(session).set_status(killmail_id, KillmailStatus.failed)
                failed += 1
                continue

            participants = extract_participants(result)
            async with session_scope(self._session_factory) as session:
                entities = EntityRepo(session)
                for p in participants:
                    await entities.add_if_missing(entity_id=p.entity_id, entity_type=p.entity_type)
                    await entities.link(
                        killmail_pk=killmail_pk, entity_id=p.entity_id, side=p.side
                    )
                await KillmailRepo(session).set_status(killmail_id, KillmailStatus.resolved)
            log.debug("killmail_resolved", killmail_id=killmail_id, entities=len(participants))
            resolved += 1
        return ResolveResult(resolved=resolved, failed=failed, deferred=deferred)


def _snapshot(user: User) -> _UserSnapshot:
    return _UserSnapshot(
        id=user.id,
        character_id=user.character_id,
        access_token=user.access_token,
        refresh_token=user.refresh_token,
        expires_at=user.expires_at,
        last_fetched=user.last_fetched,
    )


async def _gather_bounded(
    fn: Callable[[T], Awaitable[R]], items: Iterable[T]
) -> list[R | BaseException]:
    sem = asyncio.Semaphore(ESI_CONCURRENCY)

    async def run(item: T) -> R:
        async with sem:
            return await fn(item)

    # Exceptions are returned in place so one failing character doesn't cancel the rest.
    return await asyncio.gather(*(run(i) for i in items), return_exceptions=True)
