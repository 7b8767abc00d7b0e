"""
Shared fixtures for ledger tests.

Every ledger here runs on MemoryStateStore unless a test asks for the
sqlite fixture. Registry codes are fixed so tests can build movements
by hand:

    supplier 001  Mineradora Alfa
    client   101  Agro Beta
    products 010  Óxido de Zinco, 011 Sulfato de Zinco
    service  900  Moagem
"""

from __future__ import annotations

import pytest

from greenstock.db import _connect
from greenstock.ledger import Ledger
from greenstock.logging_config import reset_logging
from greenstock.models import (
    BatchKind,
    Movement,
    ProductEntity,
    RegistryEntity,
    ServiceEntity,
)
from greenstock.storage import MemoryStateStore, SqliteStateStore

SUPPLIER = ("001", "Mineradora Alfa")
CLIENT = ("101", "Agro Beta")
OXIDE = ("010", "Óxido de Zinco")
SULPHATE = ("011", "Sulfato de Zinco")
GRINDING = ("900", "Moagem")


# ---------------------------------------------------------------------------
# Movement builders
# ---------------------------------------------------------------------------


@pytest.fixture
def make_entry():
    def _make(
        quantity: float = 100.0,
        *,
        batch_id: str = "",
        unit_cost: float = 5.0,
        date: str = "2024-01-05",
        supplier: tuple[str, str] = SUPPLIER,
        product: tuple[str, str] = OXIDE,
        kind: BatchKind = BatchKind.PHYSICAL,
        id: str = "",
        observations: str = "",
    ) -> Movement:
        return Movement(
            id=id,
            batch_id=batch_id,
            entry_date=date,
            supplier_code=supplier[0],
            supplier=supplier[1],
            product_code=product[0],
            product_name=product[1],
            quantity=quantity,
            unit_cost=unit_cost,
            kind=kind,
            observations=observations,
        )

    return _make


@pytest.fixture
def make_exit():
    def _make(
        batch_id: str,
        quantity: float,
        *,
        unit_cost: float = 0.0,
        date: str = "2024-01-10",
        client: tuple[str, str] = CLIENT,
        product: tuple[str, str] = OXIDE,
        kind: BatchKind = BatchKind.PHYSICAL,
        id: str = "",
    ) -> Movement:
        return Movement(
            id=id,
            batch_id=batch_id,
            exit_date=date,
            supplier_code=client[0],
            supplier=client[1],
            product_code=product[0],
            product_name=product[1],
            quantity=quantity,
            unit_cost=unit_cost,
            kind=kind,
        )

    return _make


# ---------------------------------------------------------------------------
# Ledgers
# ---------------------------------------------------------------------------


@pytest.fixture
def store():
    return MemoryStateStore()


@pytest.fixture
def ledger(store):
    return Ledger.load(store)


@pytest.fixture
def seeded_ledger(ledger):
    """Ledger with one supplier, one client, two products and one service."""
    ledger.save_supplier(RegistryEntity(id="", code=SUPPLIER[0], name=SUPPLIER[1]))
    ledger.save_client(RegistryEntity(id="", code=CLIENT[0], name=CLIENT[1]))
    ledger.save_product(ProductEntity(id="", code=OXIDE[0], name=OXIDE[1]))
    ledger.save_product(ProductEntity(id="", code=SULPHATE[0], name=SULPHATE[1]))
    ledger.save_service(ServiceEntity(id="", code=GRINDING[0], name=GRINDING[1], default_price=0.5))
    return ledger


@pytest.fixture
def sqlite_conn():
    conn = _connect(":memory:")
    yield conn
    conn.close()


@pytest.fixture
def sqlite_store(sqlite_conn):
    return SqliteStateStore(sqlite_conn)


@pytest.fixture
def clean_logging():
    reset_logging()
    yield
    reset_logging()
