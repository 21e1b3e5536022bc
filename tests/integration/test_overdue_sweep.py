"""Overdue sweep over stored obligations."""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.orm.exc import StaleDataError

from src.models import Obligation, ObligationStatus
from src.services.overdue_service import OverdueService
from src.services.payment_service import PaymentService

AFTER_DUE = datetime(2024, 3, 15, 8, 0)


class TestSweepOverdue:
    def test_unpaid_past_due_becomes_overdue(self, db_session, make_obligation):
        """Scenario B: 100000 due in the past, no payments."""
        obligation = make_obligation()

        result = OverdueService(db_session).sweep_overdue(AFTER_DUE)

        assert result.count == 1
        assert result.errors == []
        db_session.refresh(obligation)
        assert obligation.status == ObligationStatus.OVERDUE

    def test_partial_past_due_becomes_overdue(self, db_session, make_obligation):
        obligation = make_obligation()
        PaymentService(db_session).record_payment(
            obligation.id, "100", date(2024, 3, 2), today=date(2024, 3, 2)
        )

        OverdueService(db_session).sweep_overdue(AFTER_DUE)

        db_session.refresh(obligation)
        assert obligation.status == ObligationStatus.OVERDUE
        assert obligation.paid_amount == Decimal("100.00")

    def test_not_yet_due_untouched(self, db_session, make_obligation):
        obligation = make_obligation(due_date=date(2024, 3, 31))

        result = OverdueService(db_session).sweep_overdue(AFTER_DUE)

        assert result.count == 0
        db_session.refresh(obligation)
        assert obligation.status == ObligationStatus.PENDING

    def test_due_today_untouched(self, db_session, make_obligation):
        make_obligation(due_date=date(2024, 3, 15))

        assert OverdueService(db_session).sweep_overdue(AFTER_DUE).count == 0

    def test_paid_never_touched(self, db_session, make_obligation):
        obligation = make_obligation()
        PaymentService(db_session).record_payment(
            obligation.id, "100000", date(2024, 3, 2), today=date(2024, 3, 2)
        )

        result = OverdueService(db_session).sweep_overdue(AFTER_DUE)

        assert result.count == 0
        db_session.refresh(obligation)
        assert obligation.status == ObligationStatus.PAID

    def test_idempotent(self, db_session, make_obligation):
        make_obligation()
        make_obligation(description="Second")
        service = OverdueService(db_session)

        assert service.sweep_overdue(AFTER_DUE).count == 2
        second = service.sweep_overdue(AFTER_DUE)
        assert second.count == 0
        assert second.errors == []

    def test_corrupt_row_collected_and_sweep_continues(self, db_session, make_obligation):
        bad = make_obligation(description="Corrupt")
        good = make_obligation(description="Fine")
        # pending although fully paid: violates the status invariant
        db_session.execute(
            update(Obligation).where(Obligation.id == bad.id).values(paid_amount=Decimal("100000"))
        )
        db_session.commit()

        result = OverdueService(db_session).sweep_overdue(AFTER_DUE)

        assert result.count == 1
        assert [obligation_id for obligation_id, _ in result.errors] == [bad.id]
        db_session.refresh(good)
        db_session.refresh(bad)
        assert good.status == ObligationStatus.OVERDUE
        assert bad.status == ObligationStatus.PENDING

    def test_lost_update_skipped(self, db_session, make_obligation, monkeypatch):
        first = make_obligation(description="Raced")
        second = make_obligation(description="Quiet")
        real_commit = db_session.commit
        calls = {"n": 0}

        def commit_losing_first():
            calls["n"] += 1
            if calls["n"] == 1:
                raise StaleDataError("payment got there first")
            real_commit()

        monkeypatch.setattr(db_session, "commit", commit_losing_first)
        result = OverdueService(db_session).sweep_overdue(AFTER_DUE)

        assert result.skipped == [first.id]
        assert result.count == 1
        monkeypatch.undo()
        db_session.refresh(second)
        assert second.status == ObligationStatus.OVERDUE

    def test_defaults_to_today(self, db_session, make_obligation):
        make_obligation(due_date=date(2000, 1, 1), period="2000-01", today=date(1999, 12, 1))

        assert OverdueService(db_session).sweep_overdue().count == 1
