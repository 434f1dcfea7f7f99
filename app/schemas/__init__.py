"""Public schema exports."""

from .auth import (
    ConnectionStatusResponse,
    HubSpotAccountInfo,
    HubSpotTokenResponse,
    MessageResponse,
    NotificationRulesPayload,
    NotificationRulesResponse,
    ProviderTokenResponse,
    SlackTeam,
    SlackTestMessagePayload,
    SlackTokenResponse,
)

__all__ = [
    "ConnectionStatusResponse",
    "HubSpotAccountInfo",
    "HubSpotTokenResponse",
    "MessageResponse",
    "NotificationRulesPayload",
    "NotificationRulesResponse",
    "ProviderTokenResponse",
    "SlackTeam",
    "SlackTestMessagePayload",
    "SlackTokenResponse",
]
