"""
Domain models for OAuth token persistence.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_instant(value: Any) -> datetime:
    """
    Coerce a stored timestamp into an aware UTC ``datetime``.

    Stores hand back either native datetimes or ISO-8601 strings depending on
    the backend; naive values are assumed to already be UTC.
    """
    if isinstance(value, datetime):
        instant = value
    elif isinstance(value, str):
        instant = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp value: {value!r}")
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


class TokenRecord(BaseModel):
    """
    The latest token material held for one provider connection.

    The owning account id is the storage key, not part of the record.
    """

    model_config = ConfigDict(frozen=True)

    provider: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = Field(
        None, description="Lifetime in seconds; None marks a non-expiring token."
    )
    created_at: datetime = Field(default_factory=utcnow)
    token_type: Optional[str] = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("created_at", mode="before")
    @classmethod
    def _normalize_created_at(cls, value: Any) -> datetime:
        return normalize_instant(value)


__all__ = ["TokenRecord", "normalize_instant", "utcnow"]
