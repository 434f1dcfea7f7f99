"""
Token lifecycle management for provider connections.

Owns the decision of whether a stored token is stale and drives
refresh-then-persist. No locking is applied: two concurrent refreshes for the
same account both write a valid record and the later write wins.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol, runtime_checkable

import httpx

from app.clients.errors import ProviderExchangeError
from app.models.oauth import TokenRecord, utcnow
from app.schemas.auth import HubSpotTokenResponse, ProviderTokenResponse
from app.services.credentials import CredentialStore

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_THRESHOLD = timedelta(seconds=60)

TokenResponse = ProviderTokenResponse


class ProviderTokenClient(Protocol):
    async def exchange_authorization_code(self, code: str) -> TokenResponse: ...


@runtime_checkable
class RefreshingTokenClient(ProviderTokenClient, Protocol):
    """A provider client that can also trade a refresh token for new tokens."""

    async def refresh_access_token(self, refresh_token: str) -> TokenResponse: ...


class NotConnectedError(Exception):
    """Raised when no token record exists for the account."""


class TokenRefreshError(Exception):
    """Raised when a stale token could not be refreshed; the old record is kept."""


def should_refresh(
    created_at: datetime,
    expires_in: Optional[int],
    *,
    now: datetime,
    threshold: timedelta = DEFAULT_REFRESH_THRESHOLD,
) -> bool:
    """True when ``now >= created_at + expires_in - threshold``."""
    if expires_in is None:
        return False
    return now >= created_at + timedelta(seconds=expires_in) - threshold


def token_record_from_response(
    response: TokenResponse, *, created_at: datetime
) -> TokenRecord:
    """Project a validated provider response onto the persisted record shape."""
    if isinstance(response, HubSpotTokenResponse):
        return TokenRecord(
            provider=response.provider,
            access_token=response.access_token,
            refresh_token=response.refresh_token,
            expires_in=response.expires_in,
            token_type=response.token_type,
            created_at=created_at,
        )

    metadata = {
        "team_id": response.team.id,
        "team_name": response.team.name,
        "scope": response.scope,
        "bot_user_id": response.bot_user_id,
        "app_id": response.app_id,
    }
    return TokenRecord(
        provider=response.provider,
        access_token=response.access_token,
        token_type=response.token_type,
        created_at=created_at,
        metadata={key: value for key, value in metadata.items() if value is not None},
    )


class TokenLifecycleManager:
    """Exchange, persist and keep fresh the tokens of one provider."""

    def __init__(
        self,
        *,
        provider: str,
        oauth_client: ProviderTokenClient,
        credential_store: CredentialStore,
        refresh_threshold: timedelta = DEFAULT_REFRESH_THRESHOLD,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._provider = provider
        self._oauth = oauth_client
        self._store = credential_store
        self._threshold = refresh_threshold
        self._clock = clock

    @property
    def provider(self) -> str:
        return self._provider

    async def exchange_for_tokens(self, code: str) -> TokenRecord:
        """
        Exchange an authorization code once and return the resulting record.

        Provider failures surface as ``ProviderExchangeError`` carrying the
        status code and raw body. Nothing is persisted here.
        """
        issued_at = self._clock()
        response = await self._oauth.exchange_authorization_code(code)
        return token_record_from_response(response, created_at=issued_at)

    def save(self, account_id: str, record: TokenRecord) -> None:
        self._store.put(account_id, record)

    def get_record(self, account_id: str) -> Optional[TokenRecord]:
        return self._store.get(account_id, self._provider)

    def is_connected(self, account_id: str) -> bool:
        return self.get_record(account_id) is not None

    def disconnect(self, account_id: str) -> None:
        self._store.delete(account_id, self._provider)

    async def get_valid_access_token(self, account_id: str) -> str:
        """Return a usable access token, refreshing it first when stale."""
        record = self.get_record(account_id)
        if record is None:
            raise NotConnectedError(
                f"No {self._provider} token stored for account {account_id}."
            )

        now = self._clock()
        if not should_refresh(
            record.created_at, record.expires_in, now=now, threshold=self._threshold
        ):
            return record.access_token

        refreshed = await self._refresh(account_id, record, now)
        return refreshed.access_token

    async def _refresh(
        self, account_id: str, record: TokenRecord, refreshed_at: datetime
    ) -> TokenRecord:
        if not isinstance(self._oauth, RefreshingTokenClient) or not record.refresh_token:
            raise TokenRefreshError(
                f"{self._provider} token for account {account_id} cannot be refreshed."
            )

        logger.info(
            "Refreshing %s token", self._provider, extra={"account_id": account_id}
        )
        try:
            response = await self._oauth.refresh_access_token(record.refresh_token)
        except (ProviderExchangeError, httpx.HTTPError) as exc:
            raise TokenRefreshError(
                f"Failed to refresh {self._provider} token for account {account_id}."
            ) from exc

        new_record = token_record_from_response(response, created_at=refreshed_at)
        if new_record.refresh_token is None:
            # Provider did not rotate the refresh token.
            new_record = new_record.model_copy(
                update={"refresh_token": record.refresh_token}
            )
        self._store.put(account_id, new_record)
        return new_record


__all__ = [
    "DEFAULT_REFRESH_THRESHOLD",
    "NotConnectedError",
    "ProviderTokenClient",
    "RefreshingTokenClient",
    "TokenLifecycleManager",
    "TokenRefreshError",
    "should_refresh",
    "token_record_from_response",
]
