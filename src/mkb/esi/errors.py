"""
mkb.esi.errors

Exception hierarchy for the SSO/ESI boundary.
"""

from __future__ import annotations

# ESI answers 420 when the per-IP error budget is spent; it resets within a minute.
_THROTTLED = frozenset({420, 429})


class EsiError(Exception):
    pass


class EsiRequestError(EsiError):
    """Transport failure or non-success HTTP status from SSO/ESI."""

    def __init__(
        self, message: str, *, status_code: int | None = None, transport: bool = False
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.transport = transport

    @property
    def retryable(self) -> bool:
        """True when the same request may succeed later (network, 5xx, throttling)."""

        if self.transport:
            return True
        if self.status_code is None:
            return False
        return self.status_code >= 500 or self.status_code in _THROTTLED


class TokenValidationError(EsiError):
    """The SSO access token failed signature, claim, or subject checks."""
