"""Settlement computation, recording and closing."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

import src.services.settlement_service as settlement_module
from src.models import (
    AccountingEntry,
    AccountingEntryType,
    Apartment,
    BalanceReason,
    Base,
    CommissionType,
    Contract,
    Owner,
    Settlement,
    SettlementDisposition,
    SettlementStatus,
)
from src.services import build_engine
from src.services.balance_service import BalanceService
from src.services.errors import (
    AlreadySettledError,
    ConcurrencyConflictError,
    NotFoundError,
    StaleSettlementError,
    ValidationError,
)
from src.services.obligation_service import ObligationDraft, ObligationService
from src.services.payment_service import PaymentService
from src.services.settlement_service import SettlementService

PAY_DAY = date(2024, 3, 5)


@pytest.fixture
def paid_month(db_session, contract, make_obligation):
    """March 2024: 300000 rent (10%) and a 50000 owner charge, both paid.

    A tenant-paid expense stays unpaid and must not count.
    """
    payments = PaymentService(db_session)
    rent = make_obligation(type="rent", amount="300000", contract_id=contract.id)
    repair = make_obligation(type="maintenance", amount="50000", paid_by="owner")
    make_obligation(type="expenses", amount="7000")
    payments.record_payment(rent.id, "300000", PAY_DAY, today=PAY_DAY)
    payments.record_payment(repair.id, "50000", PAY_DAY, today=PAY_DAY)
    return rent, repair


class TestComputeSettlement:
    def test_figures(self, db_session, owner, paid_month):
        summary = SettlementService(db_session).compute_settlement(owner.id, "2024-03")

        assert summary.period == date(2024, 3, 1)
        assert summary.total_income == Decimal("300000.00")
        assert summary.total_expenses == Decimal("50000.00")
        assert summary.commission_amount == Decimal("30000.00")
        assert summary.net_amount == Decimal("220000.00")
        assert summary.obligation_count == 2
        assert sorted(summary.obligation_ids) == sorted(o.id for o in paid_month)
        assert (
            summary.total_income - summary.total_expenses - summary.commission_amount
            == summary.net_amount
        )

    def test_read_only_and_idempotent(self, db_session, owner, paid_month):
        service = SettlementService(db_session)

        assert service.compute_settlement(owner.id, "2024-03") == service.compute_settlement(
            owner.id, date(2024, 3, 20)
        )
        assert service.list_settlements() == []

    def test_other_months_excluded(self, db_session, owner, paid_month):
        summary = SettlementService(db_session).compute_settlement(owner.id, "2024-04")

        assert summary.obligation_count == 0
        assert summary.net_amount == Decimal("0.00")

    def test_balance_reported_not_folded_in(self, db_session, owner, paid_month):
        BalanceService(db_session).set_opening_balance(owner.id, Decimal("1500"))

        summary = SettlementService(db_session).compute_settlement(owner.id, "2024-03")

        assert summary.owner_balance == Decimal("1500.00")
        assert summary.net_amount == Decimal("220000.00")

    def test_unknown_owner(self, db_session):
        with pytest.raises(NotFoundError):
            SettlementService(db_session).compute_settlement(99, "2024-03")

    def test_compute_period_lists_owners_with_paid_obligations(
        self, db_session, owner, paid_month
    ):
        summaries = SettlementService(db_session).compute_period("2024-03")

        assert [s.owner_id for s in summaries] == [owner.id]


class TestRecordSettlement:
    def test_records_pending(self, db_session, owner, paid_month):
        settlement = SettlementService(db_session).record_settlement(owner.id, "2024-03")

        assert settlement.status == SettlementStatus.PENDING
        assert settlement.net_amount == Decimal("220000.00")
        assert settlement.period == date(2024, 3, 1)

    def test_re_recording_refreshes_figures(self, db_session, owner, make_obligation, paid_month):
        service = SettlementService(db_session)
        first = service.record_settlement(owner.id, "2024-03")
        late = make_obligation(type="tax", amount="1000")
        PaymentService(db_session).record_payment(late.id, "1000", PAY_DAY, today=PAY_DAY)

        second = service.record_settlement(owner.id, "2024-03")

        assert second.id == first.id
        assert second.net_amount == Decimal("219000.00")
        assert len(service.list_settlements(owner_id=owner.id)) == 1

    def test_get_settlement(self, db_session, owner, paid_month):
        service = SettlementService(db_session)
        settlement = service.record_settlement(owner.id, "2024-03")

        assert service.get_settlement(settlement.id).id == settlement.id
        with pytest.raises(NotFoundError):
            service.get_settlement(settlement.id + 1)

    def test_refuses_when_settled(self, db_session, owner, paid_month):
        service = SettlementService(db_session)
        settlement = service.record_settlement(owner.id, "2024-03")
        service.mark_as_settled(settlement.id, "transfer", "TRX-1", "paid_out")

        with pytest.raises(AlreadySettledError):
            service.record_settlement(owner.id, "2024-03")


class TestMarkAsSettled:
    def test_paid_out_leaves_balance(self, db_session, owner, paid_month):
        service = SettlementService(db_session)
        settlement = service.record_settlement(owner.id, "2024-03")

        settled = service.mark_as_settled(
            settlement.id, "transfer", "TRX-1", SettlementDisposition.PAID_OUT, notes="March"
        )

        assert settled.status == SettlementStatus.SETTLED
        assert settled.settled_at is not None
        assert settled.disposition == SettlementDisposition.PAID_OUT
        assert settled.payment_method == "transfer"
        assert settled.reference == "TRX-1"
        assert BalanceService(db_session).get_balance(owner.id) == Decimal("0.00")
        assert BalanceService(db_session).history(owner.id) == []

    def test_credited_to_balance(self, db_session, owner, paid_month):
        service = SettlementService(db_session)
        settlement = service.record_settlement(owner.id, "2024-03")

        service.mark_as_settled(settlement.id, "internal", None, "credited_to_balance")

        balances = BalanceService(db_session)
        assert balances.get_balance(owner.id) == Decimal("220000.00")
        [entry] = balances.history(owner.id)
        assert entry.reason == BalanceReason.SETTLEMENT_CREDITED
        assert entry.settlement_id == settlement.id
        assert balances.reconcile(owner.id).is_consistent

    def test_paid_out_with_balance_zeroes_balance(self, db_session, owner, paid_month):
        balances = BalanceService(db_session)
        balances.set_opening_balance(owner.id, Decimal("1500"))
        service = SettlementService(db_session)
        settlement = service.record_settlement(owner.id, "2024-03")

        service.mark_as_settled(settlement.id, "transfer", "TRX-2", "paid_out_with_balance")

        assert balances.get_balance(owner.id) == Decimal("0.00")
        entries = balances.history(owner.id)
        assert [e.reason for e in entries] == [
            BalanceReason.OPENING_BALANCE,
            BalanceReason.SETTLEMENT_PAID_OUT,
        ]
        assert entries[-1].delta == Decimal("-1500.00")
        assert balances.reconcile(owner.id).is_consistent

    def test_commission_registered(self, db_session, owner, paid_month):
        service = SettlementService(db_session)
        settlement = service.record_settlement(owner.id, "2024-03")

        service.mark_as_settled(settlement.id, "transfer", None, "paid_out")

        entry = db_session.scalars(select(AccountingEntry)).one()
        assert entry.type == AccountingEntryType.COMMISSION
        assert entry.amount == Decimal("30000.00")
        assert entry.settlement_id == settlement.id
        assert entry.period == date(2024, 3, 1)

    def test_no_commission_no_entry(self, db_session, owner, make_obligation):
        repair = make_obligation(type="maintenance", amount="800", paid_by="owner")
        PaymentService(db_session).record_payment(repair.id, "800", PAY_DAY, today=PAY_DAY)
        service = SettlementService(db_session)
        settlement = service.record_settlement(owner.id, "2024-03")

        service.mark_as_settled(settlement.id, "cash", None, "credited_to_balance")

        assert db_session.scalars(select(AccountingEntry)).all() == []
        assert BalanceService(db_session).get_balance(owner.id) == Decimal("-800.00")

    def test_stale_figures_rejected(self, db_session, owner, make_obligation, paid_month):
        service = SettlementService(db_session)
        settlement = service.record_settlement(owner.id, "2024-03")
        late = make_obligation(type="tax", amount="1000")
        PaymentService(db_session).record_payment(late.id, "1000", PAY_DAY, today=PAY_DAY)

        with pytest.raises(StaleSettlementError):
            service.mark_as_settled(settlement.id, "transfer", None, "credited_to_balance")

        db_session.refresh(settlement)
        assert settlement.status == SettlementStatus.PENDING
        assert BalanceService(db_session).get_balance(owner.id) == Decimal("0.00")
        assert db_session.scalars(select(AccountingEntry)).all() == []

    def test_recompute_stores_fresh_figures(self, db_session, owner, make_obligation, paid_month):
        service = SettlementService(db_session)
        settlement = service.record_settlement(owner.id, "2024-03")
        late = make_obligation(type="tax", amount="1000")
        PaymentService(db_session).record_payment(late.id, "1000", PAY_DAY, today=PAY_DAY)

        settled = service.mark_as_settled(
            settlement.id, "transfer", None, "credited_to_balance", recompute=True
        )

        assert settled.net_amount == Decimal("219000.00")
        assert settled.obligation_count == 3
        assert BalanceService(db_session).get_balance(owner.id) == Decimal("219000.00")

    def test_cannot_settle_twice(self, db_session, owner, paid_month):
        service = SettlementService(db_session)
        settlement = service.record_settlement(owner.id, "2024-03")
        service.mark_as_settled(settlement.id, "transfer", None, "paid_out")

        with pytest.raises(AlreadySettledError):
            service.mark_as_settled(settlement.id, "transfer", None, "paid_out")

    def test_disposition_required(self, db_session, owner, paid_month):
        service = SettlementService(db_session)
        settlement = service.record_settlement(owner.id, "2024-03")

        with pytest.raises(ValidationError, match="disposition"):
            service.mark_as_settled(settlement.id, "transfer", None, None)
        with pytest.raises(ValidationError, match="method"):
            service.mark_as_settled(settlement.id, " ", None, "paid_out")

    def test_unknown_settlement(self, db_session):
        with pytest.raises(NotFoundError):
            SettlementService(db_session).mark_as_settled(42, "transfer", None, "paid_out")

    def test_list_by_status(self, db_session, owner, paid_month):
        service = SettlementService(db_session)
        settlement = service.record_settlement(owner.id, "2024-03")

        assert service.list_settlements(status="pending") == [settlement]
        service.mark_as_settled(settlement.id, "transfer", None, "paid_out")
        assert service.list_settlements(status=SettlementStatus.PENDING) == []
        assert [s.id for s in service.list_settlements(status="settled")] == [settlement.id]


@pytest.fixture
def two_sessions(tmp_path):
    """Two independent sessions on one database file, March rent paid.

    Rent is 1000 at 10% commission, so the owner's net is 900.
    """
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    first, second = factory(), factory()

    owner = Owner(
        name="Ana Torres",
        balance=Decimal("0"),
        commission_type=CommissionType.PERCENTAGE,
        commission_value=Decimal("10"),
    )
    first.add(owner)
    first.commit()
    apartment = Apartment(label="7A", owner_id=owner.id)
    first.add(apartment)
    first.commit()
    contract = Contract(
        apartment_id=apartment.id,
        tenant_name="Pablo Diaz",
        start_date=date(2024, 1, 1),
        end_date=date(2024, 12, 31),
    )
    first.add(contract)
    first.commit()
    rent = ObligationService(first).create_obligation(
        ObligationDraft(
            type="rent",
            amount="1000",
            description="March rent",
            period="2024-03",
            due_date=date(2024, 3, 10),
            contract_id=contract.id,
        ),
        today=PAY_DAY,
    )
    PaymentService(first).record_payment(rent.id, "1000", PAY_DAY, today=PAY_DAY)

    yield first, second, owner.id
    first.close()
    second.close()
    engine.dispose()


class TestConcurrentSettlement:
    def test_cached_pending_copy_cannot_settle_again(self, two_sessions):
        first, second, owner_id = two_sessions
        settlement_id = SettlementService(first).record_settlement(owner_id, "2024-03").id
        late = SettlementService(second)
        assert late.get_settlement(settlement_id).status == SettlementStatus.PENDING

        SettlementService(first).mark_as_settled(
            settlement_id, "transfer", None, "credited_to_balance"
        )
        with pytest.raises(AlreadySettledError):
            late.mark_as_settled(settlement_id, "transfer", None, "credited_to_balance")

        balances = BalanceService(first)
        first.expire_all()
        assert balances.get_balance(owner_id) == Decimal("900.00")
        assert len(balances.history(owner_id)) == 1
        assert len(first.scalars(select(AccountingEntry)).all()) == 1

    def test_interleaved_settle_is_rejected(self, two_sessions, monkeypatch):
        first, second, owner_id = two_sessions
        settlement_id = SettlementService(first).record_settlement(owner_id, "2024-03").id
        late = SettlementService(second)
        real_settle = late._settle

        def settle_after_competitor(*args, **kwargs):
            SettlementService(first).mark_as_settled(
                settlement_id, "transfer", None, "credited_to_balance"
            )
            return real_settle(*args, **kwargs)

        monkeypatch.setattr(late, "_settle", settle_after_competitor)

        with pytest.raises(ConcurrencyConflictError):
            late.mark_as_settled(settlement_id, "transfer", None, "credited_to_balance")

        balances = BalanceService(first)
        first.expire_all()
        assert balances.get_balance(owner_id) == Decimal("900.00")
        assert len(balances.history(owner_id)) == 1
        assert balances.reconcile(owner_id).is_consistent
        assert len(first.scalars(select(AccountingEntry)).all()) == 1

    def test_duplicate_record_is_a_conflict(self, two_sessions, monkeypatch):
        first, second, owner_id = two_sessions
        real_store = settlement_module._store_figures
        state = {"fired": False}

        def store_after_competitor(settlement, figures):
            if not state["fired"]:
                state["fired"] = True
                SettlementService(first).record_settlement(owner_id, "2024-03")
            return real_store(settlement, figures)

        monkeypatch.setattr(settlement_module, "_store_figures", store_after_competitor)

        with pytest.raises(ConcurrencyConflictError):
            SettlementService(second).record_settlement(owner_id, "2024-03")

        assert len(first.scalars(select(Settlement)).all()) == 1
