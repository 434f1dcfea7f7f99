"""Local document store used when ``STORE_BACKEND=sqlite``."""

from __future__ import annotations

import json
import sqlite3
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    pk TEXT NOT NULL,
    sk TEXT NOT NULL,
    body TEXT NOT NULL,
    written_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    PRIMARY KEY (pk, sk)
)
"""


class SQLiteStore:
    """
    Whole-document store with the same (pk, sk) surface as ``DynamoDBClient``.

    Each write replaces the stored document; there are no partial updates.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._cursor() as cursor:
            cursor.execute(_SCHEMA)

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        with closing(sqlite3.connect(self._db_path)) as conn:
            with conn:
                yield conn.cursor()

    def put_item(self, item: Dict[str, Any]) -> None:
        if not item.get("pk") or not item.get("sk"):
            raise ValueError("Item must include 'pk' and 'sk' keys")

        with self._cursor() as cursor:
            cursor.execute(
                "INSERT OR REPLACE INTO documents (pk, sk, body) VALUES (?, ?, ?)",
                (item["pk"], item["sk"], json.dumps(item)),
            )

    def get_item(
        self, *, partition_key: str, sort_key: str
    ) -> Optional[Dict[str, Any]]:
        with self._cursor() as cursor:
            row = cursor.execute(
                "SELECT body FROM documents WHERE pk = ? AND sk = ?",
                (partition_key, sort_key),
            ).fetchone()
        return json.loads(row[0]) if row else None

    def delete_item(self, *, partition_key: str, sort_key: str) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                "DELETE FROM documents WHERE pk = ? AND sk = ?",
                (partition_key, sort_key),
            )


__all__ = ["SQLiteStore"]
