"""
Signed session envelope.

The session cookie carries a JWT (HS256) whose claims are the merged session
payload plus ``iat``/``exp``. Expiry is fixed at issue time; reading a session
never extends it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping, Optional

import jwt

from app.models.oauth import utcnow

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
DEFAULT_SESSION_TTL = timedelta(days=30)
RESERVED_CLAIMS = frozenset({"exp", "iat", "nbf"})

SessionPayload = dict[str, str]


class SessionInvalidError(Exception):
    """Missing, malformed, expired or forged session envelope."""


def strip_reserved_claims(payload: Mapping[str, Any]) -> SessionPayload:
    return {
        key: value for key, value in payload.items() if key not in RESERVED_CLAIMS
    }


class SessionCodec:
    """Issue and verify session envelopes with a server-held secret."""

    def __init__(
        self,
        *,
        secret: str,
        ttl: timedelta = DEFAULT_SESSION_TTL,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if not secret:
            raise ValueError("Session signing secret must be provided.")
        self._secret = secret
        self._ttl = ttl
        self._clock = clock

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def issue(self, payload: Mapping[str, Any]) -> str:
        """Sign ``payload`` (minus reserved claims) with a fresh validity window."""
        issued_at = self._clock()
        claims: dict[str, Any] = strip_reserved_claims(payload)
        # Fractional NumericDates so the window is exact to the microsecond.
        claims["iat"] = issued_at.timestamp()
        claims["exp"] = (issued_at + self._ttl).timestamp()
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def decode(self, token: Optional[str]) -> SessionPayload:
        """Verify ``token`` and return its payload without reserved claims."""
        if not token:
            raise SessionInvalidError("No session token supplied.")
        try:
            # Expiry is checked below against the injected clock.
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={
                    "require": ["exp", "iat"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidTokenError as exc:
            raise SessionInvalidError(str(exc)) from exc

        if not isinstance(claims.get("exp"), (int, float)):
            raise SessionInvalidError("Session expiry claim is malformed.")
        if self._clock().timestamp() >= claims["exp"]:
            raise SessionInvalidError("Session has expired.")
        return strip_reserved_claims(claims)

    def read(self, token: Optional[str]) -> Optional[SessionPayload]:
        """Like ``decode`` but maps every invalid envelope to ``None``."""
        try:
            return self.decode(token)
        except SessionInvalidError as exc:
            if token:
                logger.info("Ignoring invalid session token: %s", exc)
            return None


__all__ = [
    "ALGORITHM",
    "DEFAULT_SESSION_TTL",
    "RESERVED_CLAIMS",
    "SessionCodec",
    "SessionInvalidError",
    "SessionPayload",
    "strip_reserved_claims",
]
