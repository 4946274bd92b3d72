"""Typed ledger errors. Each carries a machine-readable code for the API boundary."""

from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    code = "ledger_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code}


class ValidationError(LedgerError):
    """Malformed order request; raised before any state is read."""

    code = "validation_error"


class NotFoundError(LedgerError):
    """Market or account balance does not exist."""

    code = "not_found"


class StateError(LedgerError):
    """Market exists but cannot be traded (not OPEN, not YES_NO, unknown outcome)."""

    code = "state_error"


class InsufficientBalanceError(LedgerError):
    code = "insufficient_balance"

    def __init__(self, available: float, required: float) -> None:
        super().__init__(f"Insufficient balance: need {required:.2f}, have {available:.2f}")
        self.available = available
        self.required = required

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "available": self.available, "required": self.required}


class InternalError(LedgerError):
    """Unexpected failure inside the transaction; nothing was applied."""

    code = "internal_error"
