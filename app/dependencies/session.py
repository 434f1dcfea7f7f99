"""
Session cookie transport.

Reading never fails: a missing, expired or tampered cookie is simply no
session. Writing always re-issues a complete envelope.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Annotated, Mapping, Optional

from fastapi import Depends, HTTPException, Request, Response

from app.core.config import AppSettings
from app.dependencies.clients import get_session_codec
from app.dependencies.config import get_app_settings
from app.services.session_codec import SessionCodec, SessionPayload


def get_session_payload(
    request: Request,
    codec: Annotated[SessionCodec, Depends(get_session_codec)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> Optional[SessionPayload]:
    """FastAPI dependency returning the caller's session payload, if any."""
    return codec.read(request.cookies.get(settings.session.cookie_name))


def require_session(
    payload: Annotated[Optional[SessionPayload], Depends(get_session_payload)],
) -> SessionPayload:
    """Reject callers without a valid session; invalid and absent look the same."""
    if payload is None:
        raise HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail="Unauthorized")
    return payload


def set_session_cookie(
    response: Response,
    payload: Mapping[str, str],
    *,
    codec: SessionCodec,
    settings: AppSettings,
) -> None:
    """Issue a new envelope for ``payload`` and attach it to ``response``."""
    secure = settings.is_production
    response.set_cookie(
        key=settings.session.cookie_name,
        value=codec.issue(payload),
        max_age=int(codec.ttl.total_seconds()),
        httponly=True,
        secure=secure,
        # Cross-site callback redirects need SameSite=None, which browsers
        # only accept together with Secure.
        samesite="none" if secure else "lax",
    )


__all__ = ["get_session_payload", "require_session", "set_session_cookie"]
