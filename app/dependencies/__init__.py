"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_connection_service,
    get_credential_store,
    get_document_store,
    get_hubspot_oauth_client,
    get_hubspot_token_service,
    get_notification_rule_store,
    get_session_codec,
    get_slack_chat_client,
    get_slack_notification_service,
    get_slack_oauth_client,
    get_slack_token_service,
    get_token_cipher_service,
)
from .config import get_app_settings
from .session import get_session_payload, require_session, set_session_cookie

__all__ = [
    "get_app_settings",
    "get_connection_service",
    "get_credential_store",
    "get_document_store",
    "get_hubspot_oauth_client",
    "get_hubspot_token_service",
    "get_notification_rule_store",
    "get_session_codec",
    "get_session_payload",
    "get_slack_chat_client",
    "get_slack_notification_service",
    "get_slack_oauth_client",
    "get_slack_token_service",
    "get_token_cipher_service",
    "require_session",
    "set_session_cookie",
]
