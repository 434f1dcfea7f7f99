"""
Slack OAuth and messaging utilities.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from app.clients.errors import ProviderError, ProviderExchangeError
from app.core.config import SlackSettings
from app.schemas.auth import SlackTokenResponse
from app.utils.http import RetryConfig, request_with_retry


class SlackMessageError(ProviderError):
    """Raised when ``chat.postMessage`` does not report ``ok``."""

    def __init__(self, message: str, **kwargs) -> None:
        super().__init__(message, provider="slack", **kwargs)


def _parse_json(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class SlackOAuthClient:
    """Build Slack authorization URLs and exchange codes for bot tokens."""

    AUTH_BASE_URL = "https://slack.com/oauth/v2/authorize"
    TOKEN_URL = "https://slack.com/api/oauth.v2.access"

    def __init__(
        self,
        settings: SlackSettings,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._timeout = timeout
        self._transport = transport

    def build_authorization_url(self, state: Optional[str] = None) -> str:
        params = {
            "client_id": self._settings.client_id,
            "scope": ",".join(self._settings.scopes),
            "redirect_uri": str(self._settings.redirect_uri),
        }
        if state:
            params["state"] = state
        return f"{self.AUTH_BASE_URL}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> SlackTokenResponse:
        """
        Exchange an authorization code for a bot token.

        Slack answers 200 with ``ok: false`` for most failures, so both the
        HTTP status and the ``ok`` flag are checked.
        """
        payload = {
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "redirect_uri": str(self._settings.redirect_uri),
            "code": code,
        }
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            response = await client.post(self.TOKEN_URL, data=payload)

        data = _parse_json(response)
        if not response.is_success or not data.get("ok"):
            raise ProviderExchangeError(
                "Slack token exchange failed: %s"
                % data.get("error", response.status_code),
                provider="slack",
                status_code=response.status_code,
                body=response.text,
                details=data,
            )

        try:
            return SlackTokenResponse.from_payload(data)
        except ValidationError as exc:
            raise ProviderExchangeError(
                "Incomplete token payload returned from Slack.",
                provider="slack",
                status_code=response.status_code,
                body=response.text,
                details=data,
            ) from exc


class SlackChatClient:
    """Thin wrapper over ``chat.postMessage``."""

    POST_MESSAGE_URL = "https://slack.com/api/chat.postMessage"

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_config: Optional[RetryConfig] = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport
        # chat.postMessage is not idempotent.
        self._retry = (retry_config or RetryConfig()).non_idempotent()

    async def post_message(self, *, access_token: str, channel: str, text: str) -> dict:
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            response = await request_with_retry(
                client.post,
                self.POST_MESSAGE_URL,
                json={"channel": channel, "text": text},
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Content-Type": "application/json; charset=utf-8",
                },
                retry_config=self._retry,
            )

        data = _parse_json(response)
        if not response.is_success or not data.get("ok"):
            raise SlackMessageError(
                f"Slack message failed: {data.get('error', response.status_code)}",
                status_code=response.status_code,
                body=response.text,
                details=data,
            )
        return data


__all__ = ["SlackChatClient", "SlackMessageError", "SlackOAuthClient"]
