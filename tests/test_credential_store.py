try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json
import sqlite3
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app.clients.dynamodb import DynamoDBClient
from app.clients.sqlite_store import SQLiteStore
from app.core.config import StoreSettings
from app.models.oauth import TokenRecord
from app.services.credentials import CredentialStore, NotificationRuleStore
from app.services.token_cipher import TokenCipherService

CREATED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def sqlite_store(tmp_path) -> SQLiteStore:
    return SQLiteStore(str(tmp_path / "nested" / "credentials.db"))


@pytest.fixture()
def cipher() -> TokenCipherService:
    return TokenCipherService(secret="store-test-secret")


def _hubspot_record() -> TokenRecord:
    return TokenRecord(
        provider="hubspot",
        access_token="T1",
        refresh_token="R1",
        expires_in=3600,
        created_at=CREATED_AT,
        token_type="bearer",
    )


def test_tokens_are_encrypted_at_rest(sqlite_store, cipher, tmp_path) -> None:
    CredentialStore(sqlite_store, cipher).put("42", _hubspot_record())

    conn = sqlite3.connect(tmp_path / "nested" / "credentials.db")
    try:
        (raw,) = conn.execute(
            "SELECT body FROM documents WHERE pk = ? AND sk = ?",
            ("account#42", "oauth#hubspot"),
        ).fetchone()
    finally:
        conn.close()

    item = json.loads(raw)
    assert "access_token" not in item
    assert "refresh_token" not in item
    assert item["access_token_encrypted"] != "T1"
    assert cipher.decrypt(item["access_token_encrypted"]) == "T1"
    assert cipher.decrypt(item["refresh_token_encrypted"]) == "R1"


def test_record_round_trips_through_sqlite(sqlite_store, cipher) -> None:
    credentials = CredentialStore(sqlite_store, cipher)
    credentials.put("42", _hubspot_record())

    stored = credentials.get("42", "hubspot")

    assert stored == _hubspot_record()
    assert credentials.get("42", "slack") is None
    assert credentials.get("43", "hubspot") is None


def test_put_replaces_previous_record(sqlite_store, cipher) -> None:
    credentials = CredentialStore(sqlite_store, cipher)
    credentials.put("42", _hubspot_record())
    credentials.put(
        "42", _hubspot_record().model_copy(update={"access_token": "T2"})
    )

    assert credentials.get("42", "hubspot").access_token == "T2"
    stored = sqlite_store.get_item(
        partition_key="account#42", sort_key="oauth#hubspot"
    )
    assert cipher.decrypt(stored["access_token_encrypted"]) == "T2"


def test_slack_record_keeps_metadata_and_no_expiry(sqlite_store, cipher) -> None:
    credentials = CredentialStore(sqlite_store, cipher)
    record = TokenRecord(
        provider="slack",
        access_token="xoxb-1",
        created_at=CREATED_AT,
        metadata={"team_id": "T9", "scope": "chat:write"},
    )
    credentials.put("42", record)

    stored = credentials.get("42", "slack")

    assert stored.expires_in is None
    assert stored.refresh_token is None
    assert stored.metadata == {"team_id": "T9", "scope": "chat:write"}


def test_delete_removes_only_that_provider(sqlite_store, cipher) -> None:
    credentials = CredentialStore(sqlite_store, cipher)
    credentials.put("42", _hubspot_record())
    credentials.put(
        "42",
        TokenRecord(provider="slack", access_token="xoxb-1", created_at=CREATED_AT),
    )

    credentials.delete("42", "slack")

    assert credentials.get("42", "slack") is None
    assert credentials.get("42", "hubspot") is not None


def test_rules_preserve_order_and_default_to_empty(sqlite_store) -> None:
    rules = NotificationRuleStore(sqlite_store)

    assert rules.get_rules("42") == []

    rules.save_rules("42", ["deal_won", "ticket_created", "deal_won"])
    assert rules.get_rules("42") == ["deal_won", "ticket_created", "deal_won"]

    rules.save_rules("42", [])
    assert rules.get_rules("42") == []


def test_rules_and_tokens_share_the_account_partition(sqlite_store, cipher) -> None:
    CredentialStore(sqlite_store, cipher).put("42", _hubspot_record())
    NotificationRuleStore(sqlite_store).save_rules("42", ["deal_won"])

    for sort_key in ("oauth#hubspot", "notification_rules#default"):
        item = sqlite_store.get_item(partition_key="account#42", sort_key=sort_key)
        assert item["pk"] == "account#42"
    assert sqlite_store.get_item(
        partition_key="account#43", sort_key="notification_rules#default"
    ) is None


def test_sqlite_rejects_items_without_keys(sqlite_store) -> None:
    with pytest.raises(ValueError):
        sqlite_store.put_item({"pk": "account#42"})


class FakeTable:
    def __init__(self) -> None:
        self.items: dict[tuple[str, str], dict] = {}

    def put_item(self, *, Item: dict) -> None:
        # boto3 hands numbers back as Decimal.
        self.items[(Item["pk"], Item["sk"])] = {
            key: Decimal(value) if isinstance(value, int) else value
            for key, value in Item.items()
        }

    def get_item(self, *, Key: dict) -> dict:
        item = self.items.get((Key["pk"], Key["sk"]))
        return {"Item": item} if item is not None else {}

    def delete_item(self, *, Key: dict) -> None:
        self.items.pop((Key["pk"], Key["sk"]), None)


class FakeResource:
    def __init__(self) -> None:
        self.table = FakeTable()
        self.table_names: list[str] = []

    def Table(self, name: str) -> FakeTable:  # noqa: N802 - boto3 naming
        self.table_names.append(name)
        return self.table


def _dynamodb(resource: FakeResource) -> DynamoDBClient:
    settings = StoreSettings(backend="dynamodb", dynamodb_table_name="connections")
    return DynamoDBClient(settings, resource=resource)


def test_dynamodb_backend_converts_decimals(cipher) -> None:
    resource = FakeResource()
    credentials = CredentialStore(_dynamodb(resource), cipher)
    credentials.put("42", _hubspot_record())

    stored = credentials.get("42", "hubspot")

    assert resource.table_names == ["connections"]
    assert stored.expires_in == 3600
    assert isinstance(stored.expires_in, int)
    assert stored.access_token == "T1"


def test_dynamodb_backend_delete(cipher) -> None:
    resource = FakeResource()
    credentials = CredentialStore(_dynamodb(resource), cipher)
    credentials.put("42", _hubspot_record())

    credentials.delete("42", "hubspot")

    assert credentials.get("42", "hubspot") is None


def test_dynamodb_requires_table_name() -> None:
    with pytest.raises(ValueError):
        DynamoDBClient(StoreSettings(backend="dynamodb"), resource=FakeResource())


def test_dynamodb_rules_and_tokens_share_partition(cipher) -> None:
    resource = FakeResource()
    backend = _dynamodb(resource)
    CredentialStore(backend, cipher).put("42", _hubspot_record())
    NotificationRuleStore(backend).save_rules("42", ["deal_won"])

    assert set(resource.table.items) == {
        ("account#42", "oauth#hubspot"),
        ("account#42", "notification_rules#default"),
    }
    assert NotificationRuleStore(backend).get_rules("42") == ["deal_won"]
