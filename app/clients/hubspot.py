"""
HubSpot OAuth and account utilities.

These helpers build the consent URL, run the code and refresh-token exchanges
against HubSpot's token endpoint, and look up the connected portal.
"""

from __future__ import annotations

from typing import Optional, Type
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from app.clients.errors import ProviderError, ProviderExchangeError
from app.core.config import HubSpotSettings
from app.schemas.auth import HubSpotAccountInfo, HubSpotTokenResponse
from app.utils.http import RetryConfig, request_with_retry

MULTI_STATUS = 477


class HubSpotAPIError(ProviderError):
    """Structured failure from a HubSpot API call."""

    def __init__(
        self, message: str, *, object_type: Optional[str] = None, **kwargs
    ) -> None:
        super().__init__(message, provider="hubspot", **kwargs)
        self.object_type = object_type


def raise_for_hubspot_error(
    response: httpx.Response,
    *,
    object_type: Optional[str] = None,
    error_cls: Type[ProviderError] = HubSpotAPIError,
) -> None:
    """
    Raise a structured error for any non-2xx HubSpot response.

    Batch endpoints with multi-status enabled answer 477 when some records
    failed; the per-item ``errors`` list is kept in ``details`` in that case.
    """
    status_code = response.status_code
    if 200 <= status_code < 300:
        return

    try:
        parsed = response.json()
    except ValueError:
        parsed = None
    body = response.text
    details = parsed if isinstance(parsed, dict) else {}

    multi_status = status_code == MULTI_STATUS
    if multi_status:
        details = {"errors": details.get("errors", []), "status": details.get("status")}

    message = f"HubSpot API request failed with status: {status_code}"
    kwargs = dict(
        status_code=status_code,
        body=body,
        details=details,
        is_multi_status=multi_status,
    )
    if issubclass(error_cls, HubSpotAPIError):
        raise error_cls(message, object_type=object_type, **kwargs)
    raise error_cls(message, provider="hubspot", **kwargs)


class HubSpotOAuthClient:
    """Build HubSpot authorization URLs and exchange codes for tokens."""

    AUTH_BASE_URL = "https://app.hubspot.com/oauth/authorize"
    TOKEN_URL = "https://api.hubapi.com/oauth/v1/token"
    ACCOUNT_INFO_URL = "https://api.hubapi.com/account-info/v3/details"

    def __init__(
        self,
        settings: HubSpotSettings,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_config: Optional[RetryConfig] = None,
    ) -> None:
        self._settings = settings
        self._timeout = timeout
        self._transport = transport
        self._retry = retry_config

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def build_authorization_url(self, state: Optional[str] = None) -> str:
        """Construct the HubSpot OAuth consent URL."""
        params = {
            "client_id": self._settings.client_id,
            "redirect_uri": str(self._settings.redirect_uri),
            "scope": " ".join(self._settings.scopes),
            "response_type": "code",
        }
        if state:
            params["state"] = state
        return f"{self.AUTH_BASE_URL}?{urlencode(params)}"

    async def _token_request(self, form: dict[str, str]) -> HubSpotTokenResponse:
        payload = {
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "redirect_uri": str(self._settings.redirect_uri),
            **form,
        }
        async with self._client() as client:
            response = await client.post(self.TOKEN_URL, data=payload)

        raise_for_hubspot_error(
            response, object_type="OAuthToken", error_cls=ProviderExchangeError
        )

        try:
            return HubSpotTokenResponse.from_payload(response.json())
        except (ValueError, ValidationError) as exc:
            raise ProviderExchangeError(
                "Incomplete token payload returned from HubSpot.",
                provider="hubspot",
                status_code=response.status_code,
                body=response.text,
            ) from exc

    async def exchange_authorization_code(self, code: str) -> HubSpotTokenResponse:
        """Exchange an authorization code for access and refresh tokens."""
        return await self._token_request(
            {"grant_type": "authorization_code", "code": code}
        )

    async def refresh_access_token(self, refresh_token: str) -> HubSpotTokenResponse:
        """Exchange a refresh token for a fresh token set."""
        return await self._token_request(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )

    async def fetch_account_info(self, access_token: str) -> HubSpotAccountInfo:
        """Fetch the connected account's details, including its portal id."""
        async with self._client() as client:
            response = await request_with_retry(
                client.get,
                self.ACCOUNT_INFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
                retry_config=self._retry,
            )

        raise_for_hubspot_error(response, object_type="AccountInfo")

        try:
            return HubSpotAccountInfo.from_payload(response.json())
        except (ValueError, ValidationError) as exc:
            raise HubSpotAPIError(
                "HubSpot account info response is missing the portal id.",
                object_type="AccountInfo",
                status_code=response.status_code,
                body=response.text,
            ) from exc


__all__ = [
    "HubSpotAPIError",
    "HubSpotOAuthClient",
    "MULTI_STATUS",
    "raise_for_hubspot_error",
]
