"""Combine a provider connection event with the caller's existing session."""

from __future__ import annotations

from typing import Mapping, Optional

from app.services.session_codec import SessionPayload

HUBSPOT_PORTAL_KEY = "hubspotPortalId"
SLACK_TEAM_KEY = "slackTeamId"


def merge_session(
    existing: Optional[Mapping[str, str]], updates: Mapping[str, str]
) -> SessionPayload:
    """
    Shallow last-write-wins merge per key.

    A new mapping is always returned; keys absent from ``updates`` survive
    unchanged and nothing is ever removed.
    """
    merged: SessionPayload = dict(existing or {})
    merged.update(updates)
    return merged


__all__ = ["HUBSPOT_PORTAL_KEY", "SLACK_TEAM_KEY", "merge_session"]
