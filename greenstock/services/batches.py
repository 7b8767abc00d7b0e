from __future__ import annotations

from typing import Iterable, Sequence

from greenstock.models import Movement


def _sequence_of(batch_id: str) -> int:
    # "SUP/SEQ/PRD" -> SEQ; anything else counts as 0
    parts = str(batch_id).split("/")
    if len(parts) != 3:
        return 0
    try:
        return int(parts[1])
    except ValueError:
        return 0


def max_sequence(supplier_code: str, movements: Iterable[Movement]) -> int:
    seq = 0
    for m in movements:
        if m.is_entry and m.supplier_code == supplier_code:
            seq = max(seq, _sequence_of(m.batch_id))
    return seq


def format_sequence(n: int) -> str:
    # Grows past 999 as plain wider digits
    return f"{int(n):03d}"


def next_sequence(supplier_code: str, movements: Iterable[Movement]) -> str:
    """
    Next batch sequence for a supplier, from the entries already in the ledger.

    No counter is stored: the history is scanned every time, so the result
    is always above every surviving entry for that supplier. Deleting the
    highest batch frees its number again.
    """
    return format_sequence(max_sequence(supplier_code, movements) + 1)


def compose_batch_id(supplier_code: str, sequence: str, product_code: str) -> str:
    """
    Batch code:
      {SUPPLIER}/{SEQ}/{PRODUCT}

    Example:
      001/014/002
    """
    return f"{supplier_code}/{sequence}/{product_code}"


def allocate_batch_ids(
    supplier_code: str,
    product_codes: Sequence[str],
    movements: Iterable[Movement],
) -> list[str]:
    """Consecutive fresh batch ids, one per product code, all for the same supplier."""
    start = max_sequence(supplier_code, movements) + 1
    return [
        compose_batch_id(supplier_code, format_sequence(start + i), code)
        for i, code in enumerate(product_codes)
    ]
