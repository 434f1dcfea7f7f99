"""
DynamoDB document store for token records and notification rules.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional

import boto3

from app.core.config import StoreSettings


def _plain(value: Any) -> Any:
    """Convert boto3's ``Decimal`` numbers back into ints/floats."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_plain(item) for item in value]
    return value


class DynamoDBClient:
    """Same interface as ``SQLiteStore`` over a single (pk, sk) table."""

    def __init__(self, settings: StoreSettings, *, resource: Any = None) -> None:
        if not settings.dynamodb_table_name:
            raise ValueError("DYNAMODB_TABLE_NAME is required for the dynamodb backend.")
        self._settings = settings
        self._resource = resource or boto3.resource(
            "dynamodb", region_name=settings.region_name
        )
        self._table = self._resource.Table(settings.dynamodb_table_name)

    def put_item(self, item: Dict[str, Any]) -> None:
        """Put an item in the DynamoDB table."""
        self._table.put_item(Item=item)

    def get_item(self, *, partition_key: str, sort_key: str) -> Optional[Dict[str, Any]]:
        """Retrieve an item using its key."""
        response = self._table.get_item(Key={"pk": partition_key, "sk": sort_key})
        item = response.get("Item")
        return _plain(item) if item is not None else None

    def delete_item(self, *, partition_key: str, sort_key: str) -> None:
        self._table.delete_item(Key={"pk": partition_key, "sk": sort_key})


__all__ = ["DynamoDBClient"]
