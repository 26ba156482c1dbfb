"""
mkb.esi.client

HTTP client boundary for ESI data endpoints.

Responsibilities:
- Fetch a character's recent killmail references (authenticated, conditional GET).
- Fetch public killmail detail by id + hash.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import format_datetime
from typing import Any

import httpx

from mkb.esi.errors import EsiRequestError
from mkb.settings import Settings


@dataclass(frozen=True, slots=True)
class KillmailRef:
    killmail_id: int
    killmail_hash: str


def http_date(dt: datetime) -> str:
    # Stored timestamps may come back naive (SQLite); they are always UTC.
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return format_datetime(dt.astimezone(UTC), usegmt=True)


class EsiClient:
    def __init__(self, *, settings: Settings, http: httpx.AsyncClient) -> None:
        self._base_url = settings.esi_base_url.rstrip("/")
        self._http = http

    async def recent_killmails(
        self,
        *,
        character_id: int,
        access_token: str,
        last_fetched: datetime | None = None,
    ) -> list[KillmailRef]:
        headers = {"Authorization": f"Bearer {access_token}"}
        if last_fetched is not None:
            headers["If-Modified-Since"] = http_date(last_fetched)

        r = await self._get(f"/characters/{character_id}/killmails/recent/", headers=headers)
        if r.status_code == httpx.codes.NOT_MODIFIED:
            return []
        try:
            return [
                KillmailRef(
                    killmail_id=int(item["killmail_id"]),
                    killmail_hash=str(item["killmail_hash"]),
                )
                for item in r.json()
            ]
        except (ValueError, KeyError, TypeError) as e:
            raise EsiRequestError(f"malformed killmail list: {e}") from e

    async def killmail(self, *, killmail_id: int, killmail_hash: str) -> dict[str, Any]:
        r = await self._get(f"/killmails/{killmail_id}/{killmail_hash}/")
        try:
            body = r.json()
        except ValueError as e:
            raise EsiRequestError(f"malformed killmail {killmail_id}: {e}") from e
        if not isinstance(body, dict):
            raise EsiRequestError(f"malformed killmail {killmail_id}: expected an object")
        return body

    async def _get(self, path: str, *, headers: dict[str, str] | None = None) -> httpx.Response:
        try:
            r = await self._http.get(f"{self._base_url}{path}", headers=headers)
        except httpx.HTTPError as e:
            raise EsiRequestError(f"GET {path} failed: {e}", transport=True) from e
        if r.is_error:
            raise EsiRequestError(
                f"GET {path} failed with status {r.status_code}: {r.text}",
                status_code=r.status_code,
            )
        return r
