"""Expose constructed client wrappers."""

from .dynamodb import DynamoDBClient
from .errors import ProviderError, ProviderExchangeError
from .hubspot import HubSpotAPIError, HubSpotOAuthClient
from .slack import SlackChatClient, SlackMessageError, SlackOAuthClient
from .sqlite_store import SQLiteStore

__all__ = [
    "DynamoDBClient",
    "HubSpotAPIError",
    "HubSpotOAuthClient",
    "ProviderError",
    "ProviderExchangeError",
    "SQLiteStore",
    "SlackChatClient",
    "SlackMessageError",
    "SlackOAuthClient",
]
