"""
Persisted ledger state: key -> JSON array text.

Two backends share the same three-method shape:
  - SqliteStateStore: the app's state file (one row per collection)
  - MemoryStateStore: plain dict, used by tests and throwaway sessions

save_many() writes all given keys or none of them.
"""
from __future__ import annotations

import logging
import sqlite3
from typing import Mapping, Optional, Protocol

from greenstock.db import ensure_schema, q, x
from greenstock.utils import iso_now

logger = logging.getLogger(__name__)

COLLECTION_KEYS = (
    "movements",
    "analyses",
    "suppliers",
    "clients",
    "products",
    "services",
    "production_orders",
)


class StateStore(Protocol):
    def load(self, key: str) -> Optional[str]: ...

    def save_many(self, values: Mapping[str, str]) -> None: ...

    def clear(self) -> None: ...


class MemoryStateStore:
    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self.values: dict[str, str] = dict(initial or {})

    def load(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def save_many(self, values: Mapping[str, str]) -> None:
        self.values.update(values)

    def clear(self) -> None:
        self.values.clear()


class SqliteStateStore:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        ensure_schema(conn)

    def load(self, key: str) -> Optional[str]:
        rows = q(self.conn, "SELECT value FROM state WHERE key=?", (key,))
        return str(rows[0]["value"]) if rows else None

    def save_many(self, values: Mapping[str, str]) -> None:
        ts = iso_now()
        # sqlite3 connection as context manager: commit on success, rollback on error
        with self.conn:
            self.conn.executemany(
                """
                INSERT INTO state (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at
                """,
                [(k, v, ts) for k, v in values.items()],
            )

    def clear(self) -> None:
        n = x(self.conn, "DELETE FROM state;")
        logger.info("State cleared (%d key(s))", n)
