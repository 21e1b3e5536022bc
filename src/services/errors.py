"""Ledger error taxonomy.

Every failure the ledger reports to its callers is a LedgerError subclass
carrying a human-readable message, a stable machine code and the HTTP status
the request layer should answer with. Nothing is clamped or silently
corrected: an overpayment is rejected, never truncated.
"""

from typing import Any, Dict


class LedgerError(Exception):
    """Base ledger error."""

    code = "ledger_error"
    http_status = 400

    def __init__(self, message: str, code: str | None = None, http_status: int | None = None):
        """Initialize error."""
        self.message = message
        if code is not None:
            self.code = code
        if http_status is not None:
            self.http_status = http_status
        super().__init__(message)


class ValidationError(LedgerError):
    """Request violates a ledger rule (non-positive amount, bad input...)."""

    code = "validation_error"
    http_status = 400


class OverpaymentError(ValidationError):
    """Payment would push paid_amount above the obligation amount."""

    code = "overpayment"


class AlreadySettledError(ValidationError):
    """Obligation is already paid, or settlement is already settled."""

    code = "already_settled"


class InsufficientBalanceError(LedgerError):
    """Owner balance does not cover an owner_balance payment."""

    code = "insufficient_balance"
    http_status = 409


class NotFoundError(LedgerError):
    """Unknown obligation, owner, apartment, contract or settlement."""

    code = "not_found"
    http_status = 404


class ConcurrencyConflictError(LedgerError):
    """Lost update detected on an obligation, owner balance or settlement write."""

    code = "concurrency_conflict"
    http_status = 409


class StaleSettlementError(ConcurrencyConflictError):
    """Paid obligations changed since the settlement figures were recorded."""

    code = "stale_settlement"


def error_response(error: LedgerError) -> Dict[str, Any]:
    """Create a standardized error response body."""
    return {
        "error": {
            "code": error.code,
            "message": error.message,
        }
    }


__all__ = [
    "LedgerError",
    "ValidationError",
    "OverpaymentError",
    "AlreadySettledError",
    "InsufficientBalanceError",
    "NotFoundError",
    "ConcurrencyConflictError",
    "StaleSettlementError",
    "error_response",
]
