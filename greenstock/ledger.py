"""
Ledger facade: the single entry point the UI talks to.

Holds the in-memory collections (LedgerState) and a StateStore. Every
mutation validates first, builds new lists, persists the touched keys in
one save_many() call and only then swaps the new lists in, so a failure at
any step leaves both memory and storage as they were.

Derived views (stock, available batches) are recomputed from the movement
list on every call.
"""
from __future__ import annotations

import json
import logging
import threading
from dataclasses import replace
from typing import Any, Iterable, Optional

from greenstock.errors import ConfirmationRequired, ValidationError
from greenstock.models import (
    RECORD_TYPES,
    BatchBalance,
    BatchKind,
    LedgerState,
    Movement,
    ProcessRequest,
    ProductAnalysis,
    ProductEntity,
    ProductionOrder,
    RegistryEntity,
    ServiceEntity,
)
from greenstock.services import interchange
from greenstock.services.analyses import resolve_analysis, upsert_analysis
from greenstock.services.inventory import aggregate, overdrawn_batches
from greenstock.services.movements import labor_returns, prepare_movement, without_movement
from greenstock.services.processing import build_production, validate_request
from greenstock.services.registries import OnDuplicate, copy_as_client, delete_entity, save_entity
from greenstock.storage import COLLECTION_KEYS, StateStore

logger = logging.getLogger(__name__)

# One import at a time per process; a second one is rejected, not queued.
_IMPORT_LOCK = threading.Lock()


def _dump(records: Iterable[Any]) -> str:
    return json.dumps([r.to_dict() for r in records], ensure_ascii=False)


def _load_collection(store: StateStore, key: str, warnings: list[str]) -> list:
    """
    One collection from the store. Never raises: bad JSON or a non-list
    falls back to [], bad records are dropped; both are reported.
    """
    raw = store.load(key)
    if raw is None:
        return []
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        warnings.append(f"{key}: stored data is not valid JSON ({e}); starting empty")
        return []
    if not isinstance(data, list):
        warnings.append(f"{key}: stored data is not a list; starting empty")
        return []

    cls = RECORD_TYPES[key]
    out = []
    for i, item in enumerate(data):
        try:
            out.append(cls.from_dict(item))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            warnings.append(f"{key}[{i}]: unreadable record dropped ({e!r})")
    return out


class Ledger:
    def __init__(self, store: StateStore, state: Optional[LedgerState] = None):
        self.store = store
        self.state = state or LedgerState()
        self.load_warnings: list[str] = []

    # -------------------------
    # Lifecycle
    # -------------------------

    @classmethod
    def load(cls, store: StateStore) -> "Ledger":
        warnings: list[str] = []
        state = LedgerState(**{key: _load_collection(store, key, warnings) for key in COLLECTION_KEYS})
        for w in warnings:
            logger.warning("Load: %s", w)
        ledger = cls(store, state)
        ledger.load_warnings = warnings
        return ledger

    def _commit(self, **changes: list) -> None:
        self.store.save_many({key: _dump(records) for key, records in changes.items()})
        self.state = replace(self.state, **changes)

    def save_all(self) -> None:
        self._commit(**{key: getattr(self.state, key) for key in COLLECTION_KEYS})

    def wipe(self, *, confirm: bool = False) -> None:
        if not confirm:
            raise ConfirmationRequired("Wiping all data must be confirmed.")
        self.store.clear()
        self.state = LedgerState()
        logger.info("Ledger wiped")

    # -------------------------
    # Read side
    # -------------------------

    @property
    def movements(self) -> list[Movement]:
        return self.state.movements

    def stock(self, kind: Optional[BatchKind] = None) -> list[BatchBalance]:
        return aggregate(self.state.movements, self.state.analyses, kind=kind)

    def available_batches(self, kind: Optional[BatchKind] = None) -> list[BatchBalance]:
        """Batches with stock, for the exit and processing selectors."""
        return self.stock(kind)

    def overdrawn_batches(self) -> list[BatchBalance]:
        return overdrawn_batches(self.state.movements)

    def analysis_for(self, batch_id: str, product_code: str) -> ProductAnalysis:
        return resolve_analysis(self.state.analyses, batch_id, product_code)

    # -------------------------
    # Movements
    # -------------------------

    def add_movement(self, data: Movement) -> Movement:
        m = prepare_movement(data, self.state.movements)
        self._commit(movements=self.state.movements + [m])
        logger.info(
            "%s %s: %.4f %s", "Entry" if m.is_entry else "Exit", m.batch_id, m.quantity, m.product_name
        )
        return m

    def delete_movement(self, movement_id: str, *, confirm: bool = False) -> None:
        """
        Remove one movement. Batches derived from it are not touched.
        """
        if not confirm:
            raise ConfirmationRequired("Deleting a movement must be confirmed.")
        kept = without_movement(self.state.movements, movement_id)
        if kept is None:
            raise ValidationError(f"Movement {movement_id} not found.", field="id")
        self._commit(movements=kept)
        logger.info("Movement %s deleted", movement_id)

    def return_labor(
        self,
        *,
        date: str,
        client: RegistryEntity,
        returns: Iterable[tuple[str, float]],
        observations: str = "",
    ) -> list[Movement]:
        new = labor_returns(
            self.state.movements,
            date=date,
            client=client.name,
            client_code=client.code,
            returns=returns,
            observations=observations,
        )
        self._commit(movements=self.state.movements + new)
        logger.info("M.O. return for %s: %d batch(es)", client.name, len(new))
        return new

    # -------------------------
    # Analyses
    # -------------------------

    def save_analysis(self, record: ProductAnalysis) -> None:
        if not record.key:
            raise ValidationError("Select a batch or product for the analysis.", field="batch_id")
        self._commit(analyses=upsert_analysis(self.state.analyses, record))

    # -------------------------
    # Processing
    # -------------------------

    def process_order(self, request: ProcessRequest) -> ProductionOrder:
        """
        Consume (part of) a source batch into new output batches.

        The source exit, the output entries and the production order are
        persisted in a single commit.
        """
        request = validate_request(request, self.state.movements)
        new_movements, order = build_production(request, self.state.movements)
        self._commit(
            movements=self.state.movements + new_movements,
            production_orders=self.state.production_orders + [order],
        )
        logger.info(
            "Order %s: %.4f of %s -> %d output(s), loss %.4f",
            order.id,
            order.processed_quantity,
            order.source_batch_id,
            len(order.outputs),
            order.loss,
        )
        return order

    # -------------------------
    # Registries
    # -------------------------

    def _save_in(self, key: str, entity: Any, on_duplicate: OnDuplicate) -> Any:
        updated = save_entity(getattr(self.state, key), entity, on_duplicate=on_duplicate)
        self._commit(**{key: updated})
        return next(e for e in updated if e.code == entity.code.strip())

    def _delete_in(self, key: str, entity_id: str, confirm: bool) -> None:
        if not confirm:
            raise ConfirmationRequired(f"Deleting from {key} must be confirmed.")
        kept = delete_entity(getattr(self.state, key), entity_id)
        if kept is None:
            raise ValidationError(f"Record {entity_id} not found in {key}.", field="id")
        self._commit(**{key: kept})

    def save_supplier(self, entity: RegistryEntity, *, on_duplicate: OnDuplicate = "ask") -> RegistryEntity:
        return self._save_in("suppliers", entity, on_duplicate)

    def save_client(self, entity: RegistryEntity, *, on_duplicate: OnDuplicate = "ask") -> RegistryEntity:
        return self._save_in("clients", entity, on_duplicate)

    def save_product(self, entity: ProductEntity, *, on_duplicate: OnDuplicate = "ask") -> ProductEntity:
        return self._save_in("products", entity, on_duplicate)

    def save_service(self, entity: ServiceEntity, *, on_duplicate: OnDuplicate = "ask") -> ServiceEntity:
        return self._save_in("services", entity, on_duplicate)

    def delete_supplier(self, entity_id: str, *, confirm: bool = False) -> None:
        self._delete_in("suppliers", entity_id, confirm)

    def delete_client(self, entity_id: str, *, confirm: bool = False) -> None:
        self._delete_in("clients", entity_id, confirm)

    def delete_product(self, entity_id: str, *, confirm: bool = False) -> None:
        self._delete_in("products", entity_id, confirm)

    def delete_service(self, entity_id: str, *, confirm: bool = False) -> None:
        self._delete_in("services", entity_id, confirm)

    def replicate_supplier_as_client(self, supplier_id: str, *, on_duplicate: OnDuplicate = "ask") -> RegistryEntity:
        supplier = next((s for s in self.state.suppliers if s.id == supplier_id), None)
        if supplier is None:
            raise ValidationError(f"Supplier {supplier_id} not found.", field="id")
        return self.save_client(copy_as_client(supplier), on_duplicate=on_duplicate)

    # -------------------------
    # Spreadsheet interchange
    # -------------------------

    def export_all(self) -> bytes:
        return interchange.export_workbook(self.state)

    def import_all(self, data: bytes, *, confirm: bool = False) -> interchange.ImportResult:
        """
        Replace every collection found in the workbook. Not a merge.

        Collections without a sheet keep their current content. Nothing is
        written unless the whole workbook parsed.
        """
        if not confirm:
            return interchange.ImportResult(
                applied=False, reason="Import replaces all current data and must be confirmed."
            )
        if not _IMPORT_LOCK.acquire(blocking=False):
            return interchange.ImportResult(applied=False, reason="Another import is already running.")
        try:
            parsed, result = interchange.import_workbook(data)
            if parsed is None:
                return result
            self._commit(**parsed.collections)
            result.applied = True
            logger.info("Import applied: %s", ", ".join(result.loaded))
            return result
        finally:
            _IMPORT_LOCK.release()
