"""Tests for the ledger error taxonomy."""

import pytest

from src.services.errors import (
    AlreadySettledError,
    ConcurrencyConflictError,
    InsufficientBalanceError,
    LedgerError,
    NotFoundError,
    OverpaymentError,
    StaleSettlementError,
    ValidationError,
    error_response,
)


class TestErrorHierarchy:
    @pytest.mark.parametrize(
        "error_cls, code, status",
        [
            (ValidationError, "validation_error", 400),
            (OverpaymentError, "overpayment", 400),
            (AlreadySettledError, "already_settled", 400),
            (InsufficientBalanceError, "insufficient_balance", 409),
            (NotFoundError, "not_found", 404),
            (ConcurrencyConflictError, "concurrency_conflict", 409),
            (StaleSettlementError, "stale_settlement", 409),
        ],
    )
    def test_codes_and_statuses(self, error_cls, code, status):
        error = error_cls("boom")

        assert isinstance(error, LedgerError)
        assert error.code == code
        assert error.http_status == status
        assert str(error) == "boom"

    def test_stale_settlement_is_a_concurrency_conflict(self):
        assert issubclass(StaleSettlementError, ConcurrencyConflictError)

    def test_overrides(self):
        error = LedgerError("custom", code="custom_code", http_status=418)

        assert error.code == "custom_code"
        assert error.http_status == 418
        # class attributes untouched
        assert LedgerError.code == "ledger_error"


class TestErrorResponse:
    def test_body_shape(self):
        body = error_response(NotFoundError("Obligation 9 not found"))

        assert body == {"error": {"code": "not_found", "message": "Obligation 9 not found"}}
