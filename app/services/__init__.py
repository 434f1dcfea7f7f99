"""Service layer exports."""

from .connections import ConnectionService, NotLinkedError
from .credentials import CredentialStore, NotificationRuleStore
from .session_codec import SessionCodec, SessionInvalidError
from .session_merge import merge_session
from .slack_notify import SlackNotificationService
from .token_cipher import TokenCipherService
from .token_lifecycle import NotConnectedError, TokenLifecycleManager, TokenRefreshError

__all__ = [
    "ConnectionService",
    "CredentialStore",
    "NotConnectedError",
    "NotLinkedError",
    "NotificationRuleStore",
    "SessionCodec",
    "SessionInvalidError",
    "SlackNotificationService",
    "TokenCipherService",
    "TokenLifecycleManager",
    "TokenRefreshError",
    "merge_session",
]
