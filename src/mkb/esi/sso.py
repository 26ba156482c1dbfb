"""
mkb.esi.sso

EVE SSO (OAuth2) helpers.

Responsibilities:
- Build the authorization URL (with an anti-CSRF state nonce).
- Exchange authorization codes and refresh tokens for access tokens.
- Validate SSO access tokens (RS256 JWTs) against the published JWKS.

Note:
- The SSO signs with RS256 and publishes its keys at /oauth/jwks; keys are
  cached for `JWKS_CACHE_SECONDS` between fetches, and refetched early when a
  token names a `kid` the cache does not hold (key rotation).
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlencode

import httpx
import jwt
from jwt import InvalidTokenError, PyJWK, PyJWKError

from mkb.esi.errors import EsiRequestError, TokenValidationError
from mkb.settings import Settings

SCOPES = (
    "publicData",
    "esi-killmails.read_killmails.v1",
    "esi-killmails.read_corporation_killmails.v1",
)
VALID_ISSUERS = frozenset({"login.eveonline.com", "https://login.eveonline.com"})
SUBJECT_PREFIX = "CHARACTER:EVE:"
JWKS_CACHE_SECONDS = 60 * 60


@dataclass(frozen=True, slots=True)
class SsoConfig:
    client_id: str
    client_secret: str
    redirect_uri: str
    base_url: str
    jwks_url: str

    @classmethod
    def from_settings(cls, settings: Settings) -> SsoConfig:
        return cls(
            client_id=settings.esi_application_id,
            client_secret=settings.esi_application_secret,
            redirect_uri=settings.esi_redirect_uri,
            base_url=settings.sso_base_url.rstrip("/"),
            jwks_url=settings.sso_jwks_url,
        )


@dataclass(frozen=True, slots=True)
class TokenSet:
    """Validated SSO tokens for one character."""

    character_id: int
    access_token: str
    refresh_token: str
    expires_at: datetime

    def __repr__(self) -> str:
        expires = self.expires_at.isoformat()
        return f"TokenSet(character_id={self.character_id}, expires_at={expires})"


def _rs256_keys(jwks: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [k for k in jwks if k.get("alg") == "RS256"]


def character_id_from_subject(subject: str) -> int:
    if not subject.startswith(SUBJECT_PREFIX):
        raise TokenValidationError(f"unexpected token subject: {subject!r}")
    try:
        character_id = int(subject[len(SUBJECT_PREFIX) :])
    except ValueError as e:
        raise TokenValidationError(f"unexpected token subject: {subject!r}") from e
    if character_id <= 0:
        raise TokenValidationError(f"unexpected token subject: {subject!r}")
    return character_id


class EveSso:
    def __init__(self, *, cfg: SsoConfig, http: httpx.AsyncClient) -> None:
        self._cfg = cfg
        self._http = http
        self._jwks: list[dict[str, Any]] = []
        self._jwks_fetched_at = 0.0

    def build_auth_url(self) -> tuple[str, str]:
        """Return the SSO authorize URL and the state nonce the callback must echo."""

        state = str(uuid.uuid4())
        params = {
            "response_type": "code",
            "client_id": self._cfg.client_id,
            "redirect_uri": self._cfg.redirect_uri,
            "scope": " ".join(SCOPES),
            "state": state,
        }
        return f"{self._cfg.base_url}/v2/oauth/authorize?{urlencode(params)}", state

    async def exchange_code(self, code: str) -> TokenSet:
        return await self._token_request({"grant_type": "authorization_code", "code": code})

    async def refresh(self, refresh_token: str) -> TokenSet:
        return await self._token_request(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )

    async def _token_request(self, form: dict[str, str]) -> TokenSet:
        try:
            r = await self._http.post(
                f"{self._cfg.base_url}/v2/oauth/token",
                data=form,
                auth=(self._cfg.client_id, self._cfg.client_secret),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as e:
            raise EsiRequestError(f"token request failed: {e}", transport=True) from e
        if r.is_error:
            raise EsiRequestError(
                f"token request failed with status {r.status_code}: {r.text}",
                status_code=r.status_code,
            )

        try:
            body = r.json()
            access_token = str(body["access_token"])
            refresh_token = str(body["refresh_token"])
        except (ValueError, KeyError, TypeError) as e:
            raise EsiRequestError(f"malformed token response: {e}") from e

        claims = await self.validate_jwt(access_token)
        return TokenSet(
            character_id=character_id_from_subject(str(claims["sub"])),
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=datetime.fromtimestamp(int(claims["exp"]), tz=UTC),
        )

    async def validate_jwt(self, token: str) -> dict[str, Any]:
        key = await self._signing_key(token)
        try:
            claims = jwt.decode(
                token,
                key,
                algorithms=["RS256"],
                audience=self._cfg.client_id,
                options={"require": ["exp", "sub", "iss", "aud"]},
            )
        except InvalidTokenError as e:
            raise TokenValidationError(str(e)) from e

        if claims.get("iss") not in VALID_ISSUERS:
            raise TokenValidationError(f"JWT issuer is incorrect: {claims.get('iss')!r}")
        return claims

    async def _signing_key(self, token: str) -> Any:
        try:
            kid = jwt.get_unverified_header(token).get("kid")
        except InvalidTokenError as e:
            raise TokenValidationError(str(e)) from e

        keys = _rs256_keys(await self._fetch_jwks())
        if kid is not None and not any(k.get("kid") == kid for k in keys):
            # Unknown kid: the SSO may have rotated keys since the cache was filled.
            keys = _rs256_keys(await self._fetch_jwks(force=True))
        if not keys:
            raise TokenValidationError("no RS256 key found in SSO JWKS")
        chosen = next((k for k in keys if kid is not None and k.get("kid") == kid), keys[0])
        try:
            return PyJWK(chosen).key
        except PyJWKError as e:
            raise TokenValidationError(f"failed to load SSO signing key: {e}") from e

    async def _fetch_jwks(self, *, force: bool = False) -> list[dict[str, Any]]:
        fresh = time.monotonic() - self._jwks_fetched_at < JWKS_CACHE_SECONDS
        if self._jwks and fresh and not force:
            return self._jwks
        try:
            r = await self._http.get(self._cfg.jwks_url)
            r.raise_for_status()
            keys = r.json()["keys"]
        except httpx.HTTPError as e:
            raise EsiRequestError(f"failed to fetch SSO JWKS: {e}") from e
        except (ValueError, KeyError) as e:
            raise EsiRequestError(f"malformed SSO JWKS: {e}") from e
        self._jwks = list(keys)
        self._jwks_fetched_at = time.monotonic()
        return self._jwks
