"""
Persistence for provider token records and notification rules.

Both stores sit on a document backend exposing ``put_item``, ``get_item`` and
``delete_item`` over (pk, sk) keys (``SQLiteStore`` or ``DynamoDBClient``).
Items for one account share the ``account#<id>`` partition.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

from app.models.oauth import TokenRecord, normalize_instant, utcnow
from app.services.token_cipher import TokenCipherService


class DocumentStore(Protocol):
    def put_item(self, item: dict[str, Any]) -> None: ...

    def get_item(
        self, *, partition_key: str, sort_key: str
    ) -> Optional[dict[str, Any]]: ...

    def delete_item(self, *, partition_key: str, sort_key: str) -> None: ...


def account_key(account_id: str) -> str:
    return f"account#{account_id}"


def token_key(provider: str) -> str:
    return f"oauth#{provider}"


RULES_KEY = "notification_rules#default"


class CredentialStore:
    """Latest ``TokenRecord`` per (account, provider), encrypted at rest."""

    def __init__(
        self, backend: DocumentStore, token_cipher: TokenCipherService
    ) -> None:
        self._backend = backend
        self._cipher = token_cipher

    def put(self, account_id: str, record: TokenRecord) -> None:
        """Replace the stored record for ``(account_id, record.provider)``."""
        item = {
            "pk": account_key(account_id),
            "sk": token_key(record.provider),
            "account_id": account_id,
            "provider": record.provider,
            "access_token_encrypted": self._cipher.encrypt(record.access_token),
            "refresh_token_encrypted": self._cipher.encrypt_optional(
                record.refresh_token
            ),
            "expires_in": record.expires_in,
            "token_type": record.token_type,
            "metadata": dict(record.metadata),
            "created_at": record.created_at.isoformat(),
            "updated_at": utcnow().isoformat(),
        }
        self._backend.put_item(item)

    def get(self, account_id: str, provider: str) -> Optional[TokenRecord]:
        item = self._backend.get_item(
            partition_key=account_key(account_id), sort_key=token_key(provider)
        )
        if not item:
            return None

        expires_in = item.get("expires_in")
        return TokenRecord(
            provider=provider,
            access_token=self._cipher.decrypt(item["access_token_encrypted"]),
            refresh_token=self._cipher.decrypt_optional(
                item.get("refresh_token_encrypted")
            ),
            expires_in=int(expires_in) if expires_in is not None else None,
            created_at=normalize_instant(item["created_at"]),
            token_type=item.get("token_type"),
            metadata=item.get("metadata") or {},
        )

    def delete(self, account_id: str, provider: str) -> None:
        self._backend.delete_item(
            partition_key=account_key(account_id), sort_key=token_key(provider)
        )


class NotificationRuleStore:
    """Ordered notification rule strings per account."""

    def __init__(self, backend: DocumentStore) -> None:
        self._backend = backend

    def save_rules(self, account_id: str, rules: list[str]) -> None:
        self._backend.put_item(
            {
                "pk": account_key(account_id),
                "sk": RULES_KEY,
                "rules": list(rules),
                "updated_at": utcnow().isoformat(),
            }
        )

    def get_rules(self, account_id: str) -> list[str]:
        item = self._backend.get_item(
            partition_key=account_key(account_id), sort_key=RULES_KEY
        )
        if not item:
            return []
        return list(item.get("rules") or [])


__all__ = [
    "CredentialStore",
    "DocumentStore",
    "NotificationRuleStore",
    "account_key",
    "token_key",
]
