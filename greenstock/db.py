from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Iterable

import streamlit as st

from greenstock.schema import SCHEMA_SQL


def _connect(db_path: Path | str) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path), check_same_thread=False, timeout=5.0)
    conn.row_factory = sqlite3.Row
    return conn


@st.cache_resource
def get_conn(db_path: Path) -> sqlite3.Connection:
    """One connection per state file, shared across reruns and pages."""
    return _connect(db_path)


def table_columns(conn: sqlite3.Connection, table: str) -> set[str]:
    return {r["name"] for r in conn.execute(f"PRAGMA table_info({table});").fetchall()}


def ensure_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(SCHEMA_SQL)

    # State files written before updated_at existed
    if "updated_at" not in table_columns(conn, "state"):
        conn.execute("ALTER TABLE state ADD COLUMN updated_at TEXT NOT NULL DEFAULT '';")

    conn.commit()


def q(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
    cur = conn.execute(sql, tuple(params))
    try:
        return cur.fetchall()
    finally:
        cur.close()


def x(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> int:
    """Run one statement in its own commit; returns the affected row count."""
    with conn:
        cur = conn.execute(sql, tuple(params))
    n = cur.rowcount
    cur.close()
    return max(n, 0)
