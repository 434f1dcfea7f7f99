"""
Factory functions to provide shared clients and services as FastAPI dependencies.

Each factory is cached, so the first call builds the process-wide instance and
every component receives its collaborators through its constructor.
"""

from datetime import timedelta
from functools import lru_cache

from app.clients import (
    DynamoDBClient,
    HubSpotOAuthClient,
    SlackChatClient,
    SlackOAuthClient,
    SQLiteStore,
)
from app.core.config import get_settings
from app.services import (
    ConnectionService,
    CredentialStore,
    NotificationRuleStore,
    SessionCodec,
    SlackNotificationService,
    TokenCipherService,
    TokenLifecycleManager,
)
from app.services.credentials import DocumentStore


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_document_store() -> DocumentStore:
    """Provide the configured document backend."""
    settings = _settings()
    if settings.store.backend == "dynamodb":
        return DynamoDBClient(settings.store)
    return SQLiteStore(settings.store.sqlite_db_path)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.session.jwt_secret
    return TokenCipherService(
        secret=secret,
        previous_secrets=settings.security.previous_token_encryption_secrets,
    )


@lru_cache()
def get_credential_store() -> CredentialStore:
    return CredentialStore(get_document_store(), get_token_cipher_service())


@lru_cache()
def get_notification_rule_store() -> NotificationRuleStore:
    return NotificationRuleStore(get_document_store())


@lru_cache()
def get_session_codec() -> SessionCodec:
    """Provide the session envelope signer."""
    settings = _settings()
    return SessionCodec(
        secret=settings.session.jwt_secret,
        ttl=timedelta(days=settings.session.ttl_days),
    )


@lru_cache()
def get_hubspot_oauth_client() -> HubSpotOAuthClient:
    settings = _settings()
    return HubSpotOAuthClient(settings.hubspot, timeout=settings.http_timeout_seconds)


@lru_cache()
def get_slack_oauth_client() -> SlackOAuthClient:
    settings = _settings()
    return SlackOAuthClient(settings.slack, timeout=settings.http_timeout_seconds)


@lru_cache()
def get_slack_chat_client() -> SlackChatClient:
    return SlackChatClient(timeout=_settings().http_timeout_seconds)


@lru_cache()
def get_hubspot_token_service() -> TokenLifecycleManager:
    """Provide the HubSpot token lifecycle manager."""
    settings = _settings()
    return TokenLifecycleManager(
        provider="hubspot",
        oauth_client=get_hubspot_oauth_client(),
        credential_store=get_credential_store(),
        refresh_threshold=timedelta(
            seconds=settings.hubspot.refresh_threshold_seconds
        ),
    )


@lru_cache()
def get_slack_token_service() -> TokenLifecycleManager:
    """Provide the Slack token manager; Slack bot tokens do not expire."""
    return TokenLifecycleManager(
        provider="slack",
        oauth_client=get_slack_oauth_client(),
        credential_store=get_credential_store(),
    )


def get_connection_service() -> ConnectionService:
    return ConnectionService(
        hubspot_tokens=get_hubspot_token_service(),
        slack_tokens=get_slack_token_service(),
        hubspot_client=get_hubspot_oauth_client(),
    )


def get_slack_notification_service() -> SlackNotificationService:
    return SlackNotificationService(
        slack_tokens=get_slack_token_service(),
        chat_client=get_slack_chat_client(),
    )


__all__ = [
    "get_connection_service",
    "get_credential_store",
    "get_document_store",
    "get_hubspot_oauth_client",
    "get_hubspot_token_service",
    "get_notification_rule_store",
    "get_session_codec",
    "get_slack_chat_client",
    "get_slack_notification_service",
    "get_slack_oauth_client",
    "get_slack_token_service",
    "get_token_cipher_service",
]
