from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterable, Optional

from greenstock.models import BatchBalance, BatchKind, Movement, ProductAnalysis
from greenstock.services.analyses import resolve_analysis
from greenstock.utils import EPSILON


def group_key(m: Movement) -> tuple[BatchKind, str]:
    # Unlotted legacy rows stay apart per product instead of merging into one ""
    return (m.kind, m.batch_id or f"UNKNOWN-{m.product_code}")


def _fold(movements: Iterable[Movement]) -> dict[tuple[BatchKind, str], BatchBalance]:
    """
    Running balance per (kind, batch).

    Entries add quantity and set cost/supplier/observations (last entry wins),
    then exits subtract. Physical and service movements never share a group.
    """
    movements = list(movements)
    groups: dict[tuple[BatchKind, str], BatchBalance] = {}

    def _group(m: Movement) -> BatchBalance:
        key = group_key(m)
        if key not in groups:
            groups[key] = BatchBalance(
                batch_id=key[1],
                kind=m.kind,
                product_name=m.product_name,
                product_code=m.product_code,
                supplier=m.supplier,
                supplier_code=m.supplier_code,
            )
        return groups[key]

    for m in movements:
        if not m.is_entry:
            continue
        g = _group(m)
        g.remaining_quantity += float(m.quantity)
        g.unit_cost = float(m.unit_cost)
        g.supplier = m.supplier
        g.supplier_code = m.supplier_code
        if m.observations:
            g.observations = m.observations

    for m in movements:
        if m.is_exit:
            _group(m).remaining_quantity -= float(m.quantity)

    return groups


def aggregate(
    movements: Iterable[Movement],
    analyses: Iterable[ProductAnalysis] = (),
    kind: Optional[BatchKind] = None,
) -> list[BatchBalance]:
    """
    Current stock per batch. Pure: recompute it whenever the ledger changes.

    Batches at or below EPSILON (depleted or over-drawn) are left out.
    """
    analyses = list(analyses)
    out: list[BatchBalance] = []
    for g in _fold(movements).values():
        if kind is not None and g.kind != kind:
            continue
        if g.remaining_quantity <= EPSILON:
            continue
        g.analysis = resolve_analysis(analyses, g.batch_id, g.product_code)
        out.append(g)
    return sorted(out, key=lambda b: (b.product_name.lower(), b.batch_id))


def find_balance(
    movements: Iterable[Movement], batch_id: str, kind: Optional[BatchKind] = None
) -> Optional[BatchBalance]:
    for b in aggregate(movements, kind=kind):
        if b.batch_id == batch_id:
            return b
    return None


def overdrawn_batches(movements: Iterable[Movement]) -> list[BatchBalance]:
    """Batches with more withdrawn than received. aggregate() hides these."""
    return [g for g in _fold(movements).values() if g.remaining_quantity < -EPSILON]


@dataclass
class StockStats:
    total_stock: float
    total_value: float


def stock_stats(movements: Iterable[Movement]) -> StockStats:
    """Physical stock totals for the dashboard cards."""
    total_stock = 0.0
    total_value = 0.0
    for m in movements:
        if m.is_service:
            continue
        if m.is_entry:
            total_stock += m.quantity
            total_value += m.quantity * m.unit_cost
        elif m.is_exit:
            total_stock -= m.quantity
            total_value -= m.quantity * m.unit_cost
    return StockStats(total_stock=total_stock, total_value=total_value)


def balance_timeline(
    movements: Iterable[Movement], days: Optional[int] = None, today: Optional[date] = None
) -> list[dict[str, Any]]:
    """
    Accumulated physical balance after each movement date.

    With `days`, the first point is the opening balance at the start of the
    window and only dates inside the window get their own point.
    """
    changes: dict[str, float] = {}
    for m in movements:
        if m.is_service or not m.date:
            continue
        delta = m.quantity if m.is_entry else -m.quantity
        changes[m.date] = changes.get(m.date, 0.0) + delta

    start = ""
    if days is not None:
        start = ((today or date.today()) - timedelta(days=int(days))).isoformat()

    balance = sum(v for d, v in changes.items() if d < start)
    points = []
    if start:
        points.append({"date": start, "balance": max(0.0, balance)})
    for d in sorted(k for k in changes if k >= start):
        balance += changes[d]
        points.append({"date": d, "balance": max(0.0, balance)})
    return points


def labor_billing(movements: Iterable[Movement], search: str = "") -> tuple[list[Movement], float]:
    """
    Service exits to bill, newest first, and their total (quantity x unit cost).

    `search` matches product, client or batch, case-insensitive.
    """
    term = search.strip().lower()
    rows = [
        m
        for m in movements
        if m.is_service
        and m.is_exit
        and (
            not term
            or term in m.product_name.lower()
            or term in m.supplier.lower()
            or term in m.batch_id.lower()
        )
    ]
    rows.sort(key=lambda m: m.exit_date, reverse=True)
    total = sum(m.quantity * m.unit_cost for m in rows)
    return rows, total
