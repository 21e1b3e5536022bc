"""Owner balance ledger: single entry point, audit trail, reconciliation."""

from decimal import Decimal

import pytest
from sqlalchemy import update

from src.models import BalanceReason, Owner
from src.services.balance_service import BalanceService
from src.services.errors import InsufficientBalanceError, NotFoundError, ValidationError


class TestApply:
    def test_credit_and_debit_recorded(self, db_session, owner):
        balances = BalanceService(db_session)

        balances.apply(owner.id, Decimal("1000"), BalanceReason.SETTLEMENT_CREDITED, note="Feb")
        balances.apply(owner.id, Decimal("-250.50"), BalanceReason.PAYMENT_APPLIED)
        db_session.commit()

        assert balances.get_balance(owner.id) == Decimal("749.50")
        entries = balances.history(owner.id)
        assert [e.delta for e in entries] == [Decimal("1000.00"), Decimal("-250.50")]
        assert [e.balance_after for e in entries] == [Decimal("1000.00"), Decimal("749.50")]
        assert entries[0].note == "Feb"

    def test_apply_does_not_commit(self, db_session, owner):
        balances = BalanceService(db_session)
        balances.apply(owner.id, Decimal("10"), BalanceReason.SETTLEMENT_CREDITED)

        db_session.rollback()

        assert balances.get_balance(owner.id) == Decimal("0.00")
        assert balances.history(owner.id) == []

    def test_require_funds(self, db_session, owner):
        balances = BalanceService(db_session)
        balances.set_opening_balance(owner.id, Decimal("100"))

        with pytest.raises(InsufficientBalanceError):
            balances.apply(
                owner.id, Decimal("-100.01"), BalanceReason.PAYMENT_APPLIED, require_funds=True
            )

        balances.apply(owner.id, Decimal("-100"), BalanceReason.PAYMENT_APPLIED, require_funds=True)
        db_session.commit()
        assert balances.get_balance(owner.id) == Decimal("0.00")

    def test_debit_without_require_funds_may_go_negative(self, db_session, owner):
        balances = BalanceService(db_session)

        balances.apply(owner.id, Decimal("-40"), BalanceReason.SETTLEMENT_CREDITED)
        db_session.commit()

        assert balances.get_balance(owner.id) == Decimal("-40.00")

    def test_zero_delta_rejected(self, db_session, owner):
        with pytest.raises(ValidationError):
            BalanceService(db_session).apply(owner.id, Decimal("0"), BalanceReason.PAYMENT_APPLIED)

    def test_unknown_owner(self, db_session):
        with pytest.raises(NotFoundError):
            BalanceService(db_session).get_balance(12)


class TestOpeningBalance:
    def test_only_once(self, db_session, owner):
        balances = BalanceService(db_session)
        entry = balances.set_opening_balance(owner.id, Decimal("5000"), note="Carried from 2023")

        assert entry.reason == BalanceReason.OPENING_BALANCE
        with pytest.raises(ValidationError, match="already has balance history"):
            balances.set_opening_balance(owner.id, Decimal("1"))


class TestReconcile:
    def test_consistent(self, db_session, owner):
        balances = BalanceService(db_session)
        balances.set_opening_balance(owner.id, Decimal("300"))

        result = balances.reconcile(owner.id)

        assert result.is_consistent
        assert result.entry_count == 1
        assert result.ledger_balance == Decimal("300.00")

    def test_detects_write_outside_ledger(self, db_session, owner):
        balances = BalanceService(db_session)
        balances.set_opening_balance(owner.id, Decimal("300"))
        db_session.execute(update(Owner).where(Owner.id == owner.id).values(balance=Decimal("999")))
        db_session.commit()
        db_session.expire_all()

        result = balances.reconcile(owner.id)

        assert not result.is_consistent
        assert result.difference == Decimal("699.00")

    def test_empty_history(self, db_session, owner):
        result = BalanceService(db_session).reconcile(owner.id)

        assert result.is_consistent
        assert result.entry_count == 0
