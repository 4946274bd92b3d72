"""Order-execution ledger: atomic balance debit, position upsert and order record."""

from oddgrid.ledger.errors import (
    InsufficientBalanceError,
    InternalError,
    LedgerError,
    NotFoundError,
    StateError,
    ValidationError,
)
from oddgrid.ledger.executor import Ledger, compute_fill, validate_order, weighted_average
from oddgrid.ledger.locks import AccountLocks

__all__ = [
    "Ledger",
    "AccountLocks",
    "compute_fill",
    "validate_order",
    "weighted_average",
    "LedgerError",
    "ValidationError",
    "NotFoundError",
    "StateError",
    "InsufficientBalanceError",
    "InternalError",
]
