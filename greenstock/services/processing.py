from __future__ import annotations

import logging
from typing import Optional, Sequence, Union

from greenstock.errors import InsufficientQuantityError, ValidationError
from greenstock.models import (
    BatchKind,
    Movement,
    OutputRequest,
    ProcessRequest,
    ProductionOrder,
    ProductionOutput,
    ProductEntity,
    ServiceEntity,
)
from greenstock.services.batches import allocate_batch_ids
from greenstock.services.inventory import find_balance
from greenstock.utils import EPSILON, is_valid_code, new_id

logger = logging.getLogger(__name__)

SOURCE_EXIT_NOTE = "Processing - generated a Production Order"


def derived_note(source_batch_id: str) -> str:
    return f"Derived from processing of batch {source_batch_id}"


def output_request(item: Union[ProductEntity, ServiceEntity], quantity: float, unit_cost: Optional[float] = None) -> OutputRequest:
    """An output line for a registered product, or an M.O. output for a registered service."""
    return OutputRequest(
        product_name=item.name,
        product_code=item.code,
        quantity=float(quantity),
        unit_cost=unit_cost,
        destination_is_service=isinstance(item, ServiceEntity),
    )


def build_production(
    request: ProcessRequest, movements: Sequence[Movement]
) -> tuple[list[Movement], ProductionOrder]:
    """
    Turn a processing request into ledger movements and its production order.

    Produces:
      - one exit on the source batch for the processed quantity (cost 0;
        the source keeps its entry cost)
      - one entry per output, each on a freshly allocated batch id
        {supplier_code}/{seq}/{output product}, consecutive within the order

    Availability and loss are NOT checked here; request.loss is recorded as
    given. Append both results together or not at all.
    """
    source_code = request.source_product_code or request.source_batch_id.split("/")[-1] or "000"

    source_exit = Movement(
        id=new_id(),
        batch_id=request.source_batch_id,
        entry_date="",
        exit_date=request.date,
        supplier=request.supplier,
        supplier_code=request.supplier_code,
        product_code=source_code,
        product_name=request.source_product,
        quantity=float(request.processed_quantity),
        unit_cost=0.0,
        kind=BatchKind.of(request.source_is_service),
        observations=SOURCE_EXIT_NOTE,
    )

    new_ids = allocate_batch_ids(
        request.supplier_code, [o.product_code for o in request.outputs], movements
    )

    entries: list[Movement] = []
    stamped: list[ProductionOutput] = []
    for out, batch_id in zip(request.outputs, new_ids):
        unit_cost = float(out.unit_cost) if out.unit_cost is not None else 0.0
        entries.append(
            Movement(
                id=new_id(),
                batch_id=batch_id,
                entry_date=request.date,
                exit_date="",
                supplier=request.supplier,
                supplier_code=request.supplier_code,
                product_code=out.product_code,
                product_name=out.product_name,
                quantity=float(out.quantity),
                unit_cost=unit_cost,
                kind=BatchKind.of(out.destination_is_service),
                observations=derived_note(request.source_batch_id),
            )
        )
        stamped.append(
            ProductionOutput(
                product_name=out.product_name,
                product_code=out.product_code,
                quantity=float(out.quantity),
                new_batch_id=batch_id,
                unit_cost=unit_cost,
                destination_is_service=bool(out.destination_is_service),
            )
        )

    order = ProductionOrder(
        id=new_id(),
        date=request.date,
        source_batch_id=request.source_batch_id,
        source_product=request.source_product,
        source_is_service=bool(request.source_is_service),
        processed_quantity=float(request.processed_quantity),
        supplier=request.supplier,
        supplier_code=request.supplier_code,
        outputs=tuple(stamped),
        loss=float(request.loss or 0.0),
    )
    return [source_exit, *entries], order


def expected_loss(request: ProcessRequest) -> float:
    return float(request.processed_quantity) - sum(float(o.quantity) for o in request.outputs)


def validate_request(request: ProcessRequest, movements: Sequence[Movement]) -> ProcessRequest:
    """
    Check a request against the current stock and settle its loss.

    Returns a copy with source product code/name taken from the batch
    and loss computed when it was omitted. A supplied loss must match
    processed - sum(outputs).
    """
    if not request.date:
        raise ValidationError("Processing date is required.", field="date")
    if not request.source_batch_id:
        raise ValidationError("Select a source batch.", field="source_batch_id")
    if not request.supplier or not request.supplier_code:
        raise ValidationError("Select a registered supplier.", field="supplier")
    if not is_valid_code(request.supplier_code):
        raise ValidationError("Supplier code must have exactly 3 digits.", field="supplier_code")

    qty = float(request.processed_quantity)
    if qty <= 0:
        raise ValidationError("Processed quantity must be > 0.", field="processed_quantity")

    kind = BatchKind.of(request.source_is_service)
    balance = find_balance(movements, request.source_batch_id, kind=kind)
    if balance is None:
        raise ValidationError(
            f"Batch {request.source_batch_id} has no {kind.value} stock available.",
            field="source_batch_id",
        )
    if qty > balance.remaining_quantity + EPSILON:
        raise InsufficientQuantityError(request.source_batch_id, qty, balance.remaining_quantity)

    for i, out in enumerate(request.outputs, start=1):
        if not out.product_name or not out.product_code:
            raise ValidationError(f"Output {i}: select a registered product.", field="outputs")
        if not is_valid_code(out.product_code):
            raise ValidationError(f"Output {i}: product code must have exactly 3 digits.", field="outputs")
        if float(out.quantity) <= 0:
            raise ValidationError(f"Output {i}: quantity must be > 0.", field="outputs")
        if out.unit_cost is not None and float(out.unit_cost) < 0:
            raise ValidationError(f"Output {i}: unit cost cannot be negative.", field="outputs")

    loss = expected_loss(request)
    if request.loss is not None and abs(float(request.loss) - loss) > EPSILON:
        raise ValidationError(
            f"Loss {float(request.loss):g} does not match processed minus outputs ({loss:g}).",
            field="loss",
        )
    if loss < -EPSILON:
        logger.warning(
            "Order on %s yields more than processed (%.4f > %.4f)",
            request.source_batch_id,
            qty - loss,
            qty,
        )
    if not request.outputs:
        logger.info("Order on %s has no outputs; recording %.4f as scrap", request.source_batch_id, qty)

    request = request.with_loss(loss)
    request.source_product = balance.product_name
    request.source_product_code = balance.product_code
    return request
