"""Tests for the state stores and the guarded load of the ledger."""

from __future__ import annotations

import json
import logging

import pytest

from greenstock.db import ensure_schema, q
from greenstock.errors import ConfirmationRequired
from greenstock.ledger import Ledger
from greenstock.logging_config import configure_logging
from greenstock.models import LedgerState, ProductEntity
from greenstock.storage import COLLECTION_KEYS, MemoryStateStore


class TestSqliteStateStore:
    def test_round_trip(self, sqlite_store):
        sqlite_store.save_many({"products": "[]", "clients": '[{"id": "1"}]'})
        assert sqlite_store.load("products") == "[]"
        assert sqlite_store.load("clients") == '[{"id": "1"}]'
        assert sqlite_store.load("movements") is None

    def test_upsert_overwrites(self, sqlite_store):
        sqlite_store.save_many({"products": "[1]"})
        sqlite_store.save_many({"products": "[2]"})
        assert sqlite_store.load("products") == "[2]"

    def test_clear(self, sqlite_store):
        sqlite_store.save_many({"products": "[]"})
        sqlite_store.clear()
        assert sqlite_store.load("products") is None

    def test_ledger_survives_reload(self, sqlite_store):
        ledger = Ledger.load(sqlite_store)
        ledger.save_product(ProductEntity(id="", code="010", name="Óxido de Zinco"))
        reloaded = Ledger.load(sqlite_store)
        assert [p.name for p in reloaded.state.products] == ["Óxido de Zinco"]
        assert reloaded.load_warnings == []


def test_schema_migration_adds_updated_at(sqlite_conn):
    sqlite_conn.execute("CREATE TABLE state (key TEXT PRIMARY KEY, value TEXT NOT NULL);")
    sqlite_conn.execute("INSERT INTO state (key, value) VALUES ('products', '[]');")
    ensure_schema(sqlite_conn)
    rows = q(sqlite_conn, "SELECT key, updated_at FROM state")
    assert [(r["key"], r["updated_at"]) for r in rows] == [("products", "")]


class TestGuardedLoad:
    def test_empty_store(self):
        ledger = Ledger.load(MemoryStateStore())
        assert ledger.state == LedgerState()
        assert ledger.load_warnings == []

    def test_bad_json_falls_back_to_empty(self):
        store = MemoryStateStore({"movements": "{not json", "products": json.dumps([{"id": "p", "code": "010", "name": "X"}])})
        ledger = Ledger.load(store)
        assert ledger.state.movements == []
        assert len(ledger.state.products) == 1
        assert any(w.startswith("movements:") for w in ledger.load_warnings)

    def test_non_list_falls_back_to_empty(self):
        ledger = Ledger.load(MemoryStateStore({"clients": '{"id": "1"}'}))
        assert ledger.state.clients == []
        assert ledger.load_warnings == ["clients: stored data is not a list; starting empty"]

    def test_bad_records_are_dropped(self, caplog):
        store = MemoryStateStore({"products": json.dumps([{"code": "010"}, {"id": "p", "code": "011", "name": "Y"}])})
        with caplog.at_level(logging.WARNING, logger="greenstock"):
            ledger = Ledger.load(store)
        assert [p.code for p in ledger.state.products] == ["011"]
        assert ledger.load_warnings[0].startswith("products[0]")
        assert "unreadable record" in caplog.text


def test_save_all_writes_every_key(store):
    ledger = Ledger.load(store)
    ledger.save_all()
    assert set(store.values) == set(COLLECTION_KEYS)
    assert all(v == "[]" for v in store.values.values())


def test_wipe(seeded_ledger, store):
    with pytest.raises(ConfirmationRequired):
        seeded_ledger.wipe()
    assert seeded_ledger.state.products
    seeded_ledger.wipe(confirm=True)
    assert seeded_ledger.state == LedgerState()
    assert store.values == {}


def test_configure_logging_is_idempotent(clean_logging):
    configure_logging("DEBUG")
    configure_logging("warning")
    logger = logging.getLogger("greenstock")
    assert len(logger.handlers) == 1
    assert logger.level == logging.WARNING
    assert logger.propagate is False
