from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Optional, Sequence

from greenstock.errors import InsufficientQuantityError, ValidationError
from greenstock.models import BatchKind, Movement
from greenstock.services.batches import compose_batch_id, next_sequence
from greenstock.services.inventory import aggregate
from greenstock.utils import EPSILON, is_valid_code, new_id


def require_batch_identity(movement: Movement, movements: Iterable[Movement]) -> None:
    """Every movement on a batch must agree on kind and product."""
    for m in movements:
        if m.batch_id != movement.batch_id or m.id == movement.id:
            continue
        if m.kind != movement.kind:
            raise ValidationError(
                f"Batch {movement.batch_id} is a {m.kind.value} batch; "
                f"a {movement.kind.value} movement cannot reference it.",
                field="kind",
            )
        if m.product_code != movement.product_code or m.product_name != movement.product_name:
            raise ValidationError(
                f"Batch {movement.batch_id} holds {m.product_code} {m.product_name}, "
                f"not {movement.product_code} {movement.product_name}.",
                field="product_code",
            )
        return


def validate_movement(movement: Movement, movements: Sequence[Movement]) -> None:
    if bool(movement.entry_date) == bool(movement.exit_date):
        raise ValidationError("A movement needs exactly one of entry date or exit date.", field="date")

    label = "supplier" if movement.is_entry else "client"
    if not movement.supplier or not movement.supplier_code:
        raise ValidationError(f"Select a registered {label}.", field="supplier")
    if not movement.product_name or not movement.product_code:
        raise ValidationError("Select a registered product.", field="product_code")

    try:
        qty = float(movement.quantity)
    except (TypeError, ValueError):
        raise ValidationError("Quantity must be a number.", field="quantity")
    if qty <= 0:
        raise ValidationError("Quantity must be > 0.", field="quantity")
    if float(movement.unit_cost) < 0:
        raise ValidationError("Unit cost cannot be negative.", field="unit_cost")

    if movement.batch_id:
        require_batch_identity(movement, movements)

    if movement.is_entry:
        if not is_valid_code(movement.supplier_code):
            raise ValidationError("Supplier code must have exactly 3 digits.", field="supplier_code")
        if not is_valid_code(movement.product_code):
            raise ValidationError("Product code must have exactly 3 digits.", field="product_code")
        if movement.batch_id and any(
            m.is_entry and m.batch_id == movement.batch_id and m.id != movement.id for m in movements
        ):
            raise ValidationError(f"Batch {movement.batch_id} already has an entry.", field="batch_id")
    else:
        if not movement.batch_id:
            raise ValidationError("Select a batch to withdraw from.", field="batch_id")
        balance = next(
            (b for b in aggregate(movements, kind=movement.kind) if b.batch_id == movement.batch_id),
            None,
        )
        if balance is None:
            raise ValidationError(
                f"Batch {movement.batch_id} has no {movement.kind.value} stock available.",
                field="batch_id",
            )
        if qty > balance.remaining_quantity + EPSILON:
            raise InsufficientQuantityError(movement.batch_id, qty, balance.remaining_quantity)


def prepare_movement(data: Movement, movements: Sequence[Movement]) -> Movement:
    """
    Fill id and batch id, then validate.

    Entries without a batch id get the supplier's next sequence. Exits
    without a unit cost inherit the batch cost (used for labour billing).
    """
    m = replace(data, id=data.id or new_id())
    if m.is_entry and not m.batch_id and m.supplier_code and m.product_code:
        seq = next_sequence(m.supplier_code, movements)
        m = replace(m, batch_id=compose_batch_id(m.supplier_code, seq, m.product_code))
    validate_movement(m, movements)
    if m.is_exit and not m.unit_cost:
        balance = next((b for b in aggregate(movements, kind=m.kind) if b.batch_id == m.batch_id), None)
        if balance is not None:
            m = replace(m, unit_cost=balance.unit_cost)
    return m


def labor_returns(
    movements: Sequence[Movement],
    *,
    date: str,
    client: str,
    client_code: str,
    returns: Iterable[tuple[str, float]],
    observations: str = "",
) -> list[Movement]:
    """
    Exits for several service batches of one client on the same date.

    Only service batches whose supplier is the client are eligible; each
    requested quantity must fit the batch balance.
    """
    if not date:
        raise ValidationError("Return date is required.", field="date")
    if not client:
        raise ValidationError("Select a registered client.", field="supplier")

    available = {
        b.batch_id: b
        for b in aggregate(movements, kind=BatchKind.SERVICE)
        if b.supplier == client
    }
    out: list[Movement] = []
    for batch_id, qty in returns:
        b = available.get(batch_id)
        if b is None:
            raise ValidationError(f"Batch {batch_id} is not an open M.O. batch for {client}.", field="batch_id")
        qty = float(qty)
        if qty <= 0:
            raise ValidationError(f"Quantity for batch {batch_id} must be > 0.", field="quantity")
        if qty > b.remaining_quantity + EPSILON:
            raise InsufficientQuantityError(batch_id, qty, b.remaining_quantity)
        out.append(
            Movement(
                id=new_id(),
                batch_id=batch_id,
                exit_date=date,
                supplier=client,
                supplier_code=client_code,
                product_code=b.product_code,
                product_name=b.product_name,
                quantity=qty,
                unit_cost=b.unit_cost,
                kind=BatchKind.SERVICE,
                observations=observations,
            )
        )
        b.remaining_quantity -= qty
    if not out:
        raise ValidationError("Select at least one batch to return.", field="batch_id")
    return out


def without_movement(movements: Iterable[Movement], movement_id: str) -> Optional[list[Movement]]:
    """The ledger minus one movement, or None if the id is unknown."""
    movements = list(movements)
    kept = [m for m in movements if m.id != movement_id]
    return kept if len(kept) != len(movements) else None
