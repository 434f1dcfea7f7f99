"""
Connection flows for HubSpot and Slack.

Each callback exchanges the authorization code, files the token record under
the HubSpot portal id and returns the merged session payload the caller must
re-issue. Slack connections are only meaningful once HubSpot is connected.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from app.clients.hubspot import HubSpotOAuthClient
from app.services.session_codec import SessionPayload
from app.services.session_merge import (
    HUBSPOT_PORTAL_KEY,
    SLACK_TEAM_KEY,
    merge_session,
)
from app.services.token_lifecycle import TokenLifecycleManager

logger = logging.getLogger(__name__)


class NotLinkedError(Exception):
    """The session carries no HubSpot portal id to file the connection under."""


def portal_id_from(session: Optional[Mapping[str, str]]) -> Optional[str]:
    if not session:
        return None
    return session.get(HUBSPOT_PORTAL_KEY) or None


class ConnectionService:
    """Orchestrates callback handling and status checks for both providers."""

    def __init__(
        self,
        *,
        hubspot_tokens: TokenLifecycleManager,
        slack_tokens: TokenLifecycleManager,
        hubspot_client: HubSpotOAuthClient,
    ) -> None:
        self._hubspot_tokens = hubspot_tokens
        self._slack_tokens = slack_tokens
        self._hubspot_client = hubspot_client

    async def connect_hubspot(
        self, code: str, existing: Optional[Mapping[str, str]]
    ) -> SessionPayload:
        record = await self._hubspot_tokens.exchange_for_tokens(code)
        account = await self._hubspot_client.fetch_account_info(record.access_token)
        portal_id = str(account.portal_id)

        self._hubspot_tokens.save(portal_id, record)
        logger.info("HubSpot connected", extra={"portal_id": portal_id})
        return merge_session(existing, {HUBSPOT_PORTAL_KEY: portal_id})

    async def connect_slack(
        self, code: str, existing: Optional[Mapping[str, str]]
    ) -> SessionPayload:
        portal_id = portal_id_from(existing)
        if portal_id is None:
            raise NotLinkedError("You must connect HubSpot before connecting Slack")

        record = await self._slack_tokens.exchange_for_tokens(code)
        team_id = record.metadata["team_id"]

        self._slack_tokens.save(portal_id, record)
        logger.info(
            "Slack connected", extra={"portal_id": portal_id, "team_id": team_id}
        )
        return merge_session(existing, {SLACK_TEAM_KEY: team_id})

    def hubspot_connected(self, session: Optional[Mapping[str, str]]) -> bool:
        portal_id = portal_id_from(session)
        if portal_id is None:
            return False
        return self._hubspot_tokens.is_connected(portal_id)

    def slack_connected(self, session: Optional[Mapping[str, str]]) -> bool:
        portal_id = portal_id_from(session)
        if portal_id is None:
            return False
        return self._slack_tokens.is_connected(portal_id)


__all__ = ["ConnectionService", "NotLinkedError", "portal_id_from"]
