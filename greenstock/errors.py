from __future__ import annotations

from typing import Any, Optional


class LedgerError(Exception):
    """Base class for errors raised by the ledger engine."""


class ValidationError(LedgerError, ValueError):
    """A user-correctable input problem, raised before any state is mutated."""

    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InsufficientQuantityError(ValidationError):
    def __init__(self, batch_id: str, requested: float, available: float):
        super().__init__(
            f"Batch {batch_id} has only {available:g} available ({requested:g} requested).",
            field="quantity",
        )
        self.batch_id = batch_id
        self.requested = requested
        self.available = available


class DuplicateCodeError(ValidationError):
    """
    Another registry record already uses the code.

    The caller decides: retry with on_duplicate="overwrite" to replace the
    existing record, or pick a different code.
    """

    def __init__(self, existing: Any):
        super().__init__(
            f"Code {existing.code} is already registered to {existing.name}.",
            field="code",
        )
        self.existing = existing


class ConfirmationRequired(LedgerError):
    """A destructive operation was requested without confirm=True."""
