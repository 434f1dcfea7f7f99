"""Send Slack messages on behalf of a connected HubSpot portal."""

from __future__ import annotations

import logging

from app.clients.slack import SlackChatClient
from app.services.token_lifecycle import TokenLifecycleManager

logger = logging.getLogger(__name__)


class SlackNotificationService:
    def __init__(
        self, *, slack_tokens: TokenLifecycleManager, chat_client: SlackChatClient
    ) -> None:
        self._tokens = slack_tokens
        self._chat = chat_client

    async def send_message(self, portal_id: str, channel: str, text: str) -> None:
        """Post ``text`` to ``channel`` with the portal's Slack bot token."""
        access_token = await self._tokens.get_valid_access_token(portal_id)
        await self._chat.post_message(
            access_token=access_token, channel=channel, text=text
        )
        logger.info(
            "Slack message sent", extra={"portal_id": portal_id, "channel": channel}
        )


__all__ = ["SlackNotificationService"]
