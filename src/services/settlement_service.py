"""Settlement calculator: monthly reconciliation of what an owner is owed.

A settlement covers the PAID obligations of one owner's apartments for one
month. Figures:

    total_income      = sum of positive owner_impact + rent commission
                        (gross collected on the owner's behalf)
    total_expenses    = sum of |negative owner_impact|
    commission_amount = sum of rent commission
    net_amount        = total_income - total_expenses - commission_amount

compute_settlement() is a read-only snapshot; record_settlement() stores it
as PENDING and mark_as_settled() re-checks it against a fresh snapshot
before closing it, so a payment landing in between is never lost.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable, NamedTuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from src.models.accounting_entry import AccountingEntry, AccountingEntryType
from src.models.apartment import Apartment
from src.models.balance_entry import BalanceReason
from src.models.obligation import Obligation, ObligationStatus, ObligationType
from src.models.settlement import Settlement, SettlementDisposition, SettlementStatus
from src.services.balance_service import BalanceService
from src.services.directory import LedgerDirectory
from src.services.errors import (
    AlreadySettledError,
    ConcurrencyConflictError,
    LedgerError,
    NotFoundError,
    StaleSettlementError,
    ValidationError,
)
from src.services.impact_service import ZERO, quantize_money
from src.services.period_service import format_period, normalize_period, period_bounds

logger = logging.getLogger(__name__)


class SettlementFigures(NamedTuple):
    """Aggregated money figures of a set of paid obligations."""

    total_income: Decimal
    total_expenses: Decimal
    commission_amount: Decimal
    net_amount: Decimal
    obligation_count: int


class SettlementSummary(NamedTuple):
    """Settlement snapshot for one owner and month."""

    owner_id: int
    period: date
    figures: SettlementFigures
    owner_balance: Decimal
    obligation_ids: tuple[int, ...]

    @property
    def total_income(self) -> Decimal:
        return self.figures.total_income

    @property
    def total_expenses(self) -> Decimal:
        return self.figures.total_expenses

    @property
    def commission_amount(self) -> Decimal:
        return self.figures.commission_amount

    @property
    def net_amount(self) -> Decimal:
        return self.figures.net_amount

    @property
    def obligation_count(self) -> int:
        return self.figures.obligation_count


def summarize(obligations: Iterable[Obligation]) -> SettlementFigures:
    """Aggregate settlement figures. Pure: reads only the frozen impact columns."""
    income = ZERO
    expenses = ZERO
    commission = ZERO
    count = 0
    for obligation in obligations:
        count += 1
        owner_impact = obligation.owner_impact or ZERO
        if owner_impact > 0:
            income += owner_impact
        elif owner_impact < 0:
            expenses += -owner_impact
        if obligation.type == ObligationType.RENT:
            rent_commission = obligation.commission_amount or ZERO
            income += rent_commission
            commission += rent_commission

    income = quantize_money(income)
    expenses = quantize_money(expenses)
    commission = quantize_money(commission)
    return SettlementFigures(
        total_income=income,
        total_expenses=expenses,
        commission_amount=commission,
        net_amount=income - expenses - commission,
        obligation_count=count,
    )


def _same_figures(settlement: Settlement, figures: SettlementFigures) -> bool:
    return (
        settlement.total_income == figures.total_income
        and settlement.total_expenses == figures.total_expenses
        and settlement.commission_amount == figures.commission_amount
        and settlement.net_amount == figures.net_amount
        and settlement.obligation_count == figures.obligation_count
    )


def _store_figures(settlement: Settlement, figures: SettlementFigures) -> None:
    settlement.total_income = figures.total_income
    settlement.total_expenses = figures.total_expenses
    settlement.commission_amount = figures.commission_amount
    settlement.net_amount = figures.net_amount
    settlement.obligation_count = figures.obligation_count


class SettlementService:
    """Compute, record and close owner settlements."""

    def __init__(self, db: Session):
        """Initialize settlement service.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db
        self.directory = LedgerDirectory(db)
        self.balances = BalanceService(db)

    def _paid_obligations(self, owner_id: int, period: date) -> list[Obligation]:
        start, end = period_bounds(period)
        stmt = (
            select(Obligation)
            .join(Apartment, Obligation.apartment_id == Apartment.id)
            .where(
                Apartment.owner_id == owner_id,
                Obligation.status == ObligationStatus.PAID,
                Obligation.period >= start,
                Obligation.period < end,
            )
            .order_by(Obligation.id)
            .execution_options(populate_existing=True)
        )
        return list(self.db.scalars(stmt))

    def compute_settlement(self, owner_id: int, period: date | str) -> SettlementSummary:
        """Compute (without storing) an owner's settlement for a month.

        Args:
            owner_id: Owner to settle
            period: Any date within the month, or "YYYY-MM"

        Returns:
            SettlementSummary; owner_balance is reported, not folded in

        Raises:
            NotFoundError: Unknown owner
            ValidationError: Unparseable period
        """
        period = normalize_period(period)
        owner = self.directory.get_owner(owner_id)
        obligations = self._paid_obligations(owner_id, period)
        return SettlementSummary(
            owner_id=owner_id,
            period=period,
            figures=summarize(obligations),
            owner_balance=owner.balance,
            obligation_ids=tuple(o.id for o in obligations),
        )

    def compute_period(self, period: date | str) -> list[SettlementSummary]:
        """Summaries for every owner with paid obligations in the month."""
        start, end = period_bounds(period)
        owner_ids = self.db.scalars(
            select(Apartment.owner_id)
            .join(Obligation, Obligation.apartment_id == Apartment.id)
            .where(
                Obligation.status == ObligationStatus.PAID,
                Obligation.period >= start,
                Obligation.period < end,
            )
            .distinct()
            .order_by(Apartment.owner_id)
        )
        return [self.compute_settlement(owner_id, start) for owner_id in owner_ids]

    def record_settlement(self, owner_id: int, period: date | str) -> Settlement:
        """Store the current figures as a PENDING settlement.

        Re-recording a pending settlement refreshes its figures.

        Raises:
            AlreadySettledError: The month is already settled for this owner
            ConcurrencyConflictError: Another request recorded or settled the
                same month first
        """
        summary = self.compute_settlement(owner_id, period)
        settlement = self.db.scalars(
            select(Settlement).where(
                Settlement.owner_id == owner_id,
                Settlement.period == summary.period,
            )
            .execution_options(populate_existing=True)
        ).one_or_none()

        if settlement is not None and settlement.status == SettlementStatus.SETTLED:
            raise AlreadySettledError(
                f"Settlement for owner {owner_id} period {format_period(summary.period)} "
                "is already settled"
            )

        if settlement is None:
            settlement = Settlement(
                owner_id=owner_id,
                period=summary.period,
                status=SettlementStatus.PENDING,
            )
            self.db.add(settlement)
        _store_figures(settlement, summary.figures)
        try:
            self.db.commit()
        except (IntegrityError, StaleDataError) as e:
            self.db.rollback()
            logger.warning(
                "Concurrent write recording settlement for owner_id=%s period=%s",
                owner_id,
                format_period(summary.period),
            )
            raise ConcurrencyConflictError(
                f"Settlement for owner {owner_id} period {format_period(summary.period)} "
                "was written concurrently; retry"
            ) from e
        self.db.refresh(settlement)

        logger.info(
            "Recorded settlement %s: owner_id=%s period=%s net=%s obligations=%d",
            settlement.id,
            owner_id,
            format_period(summary.period),
            settlement.net_amount,
            settlement.obligation_count,
        )
        return settlement

    def mark_as_settled(
        self,
        settlement_id: int,
        method: str,
        reference: str | None,
        disposition: SettlementDisposition | str,
        notes: str | None = None,
        recompute: bool = False,
    ) -> Settlement:
        """Close a pending settlement and deliver its net amount.

        Args:
            settlement_id: Settlement to close
            method: How the owner was paid (transfer, cash...)
            reference: External payment reference
            disposition: paid_out, credited_to_balance or paid_out_with_balance
            notes: Optional notes
            recompute: Store fresh figures instead of failing when they moved

        Returns:
            The settled Settlement

        Raises:
            NotFoundError: Unknown settlement
            AlreadySettledError: Settlement already settled
            ValidationError: Missing method or unknown disposition
            StaleSettlementError: Figures changed and recompute is False
            ConcurrencyConflictError: Settlement or owner balance changed
                concurrently
        """
        try:
            disposition = SettlementDisposition(disposition)
        except ValueError as e:
            allowed = ", ".join(d.value for d in SettlementDisposition)
            raise ValidationError(
                f"Invalid disposition: {disposition!r}. Expected one of: {allowed}"
            ) from e
        if not method or not str(method).strip():
            raise ValidationError("Settlement payment method is required")

        # Re-read so a copy cached while still pending cannot be settled again
        settlement = self.db.get(Settlement, settlement_id, populate_existing=True)
        if settlement is None:
            raise NotFoundError(f"Settlement {settlement_id} not found")
        if settlement.status == SettlementStatus.SETTLED:
            raise AlreadySettledError(f"Settlement {settlement_id} is already settled")
        owner_id = settlement.owner_id

        try:
            self._settle(settlement, method, reference, disposition, notes, recompute)
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            logger.warning("Lost update settling settlement %s", settlement_id)
            raise ConcurrencyConflictError(
                f"Settlement {settlement_id} or owner {owner_id} balance "
                "changed while settling; retry"
            ) from e
        except LedgerError as e:
            self.db.rollback()
            logger.warning("Settlement %s not settled: %s", settlement_id, e.code)
            raise
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(settlement)
        logger.info(
            "Settlement %s settled: owner_id=%s net=%s disposition=%s",
            settlement.id,
            settlement.owner_id,
            settlement.net_amount,
            disposition.value,
        )
        return settlement

    def _settle(
        self,
        settlement: Settlement,
        method: str,
        reference: str | None,
        disposition: SettlementDisposition,
        notes: str | None,
        recompute: bool,
    ) -> None:
        fresh = self.compute_settlement(settlement.owner_id, settlement.period)
        if not _same_figures(settlement, fresh.figures):
            if not recompute:
                raise StaleSettlementError(
                    f"Settlement {settlement.id} figures changed since recorded "
                    f"(net {settlement.net_amount} -> {fresh.net_amount}); "
                    "record it again or settle with recompute"
                )
            logger.info(
                "Settlement %s recomputed: net %s -> %s",
                settlement.id,
                settlement.net_amount,
                fresh.net_amount,
            )
            _store_figures(settlement, fresh.figures)

        owner_id = settlement.owner_id
        period_label = format_period(settlement.period)
        if disposition == SettlementDisposition.CREDITED_TO_BALANCE:
            if settlement.net_amount != 0:
                self.balances.apply(
                    owner_id,
                    settlement.net_amount,
                    BalanceReason.SETTLEMENT_CREDITED,
                    settlement_id=settlement.id,
                    note=f"Settlement {period_label}",
                )
        elif disposition == SettlementDisposition.PAID_OUT_WITH_BALANCE:
            carried = self.balances.get_balance(owner_id)
            if carried != 0:
                self.balances.apply(
                    owner_id,
                    -carried,
                    BalanceReason.SETTLEMENT_PAID_OUT,
                    settlement_id=settlement.id,
                    note=f"Settlement {period_label}",
                )

        if settlement.commission_amount > 0:
            self.db.add(
                AccountingEntry(
                    type=AccountingEntryType.COMMISSION,
                    description=f"Commission owner {owner_id} {period_label}",
                    amount=settlement.commission_amount,
                    entry_date=date.today(),
                    period=settlement.period,
                    owner_id=owner_id,
                    settlement_id=settlement.id,
                )
            )

        settlement.status = SettlementStatus.SETTLED
        settlement.settled_at = datetime.now(timezone.utc)
        settlement.disposition = disposition
        settlement.payment_method = str(method).strip()
        settlement.reference = reference
        settlement.notes = notes
        self.db.flush()

    def get_settlement(self, settlement_id: int) -> Settlement:
        """Fetch a settlement or raise NotFoundError."""
        settlement = self.db.get(Settlement, settlement_id)
        if settlement is None:
            raise NotFoundError(f"Settlement {settlement_id} not found")
        return settlement

    def list_settlements(
        self,
        owner_id: int | None = None,
        status: SettlementStatus | str | None = None,
    ) -> list[Settlement]:
        """Settlements, newest period first."""
        stmt = select(Settlement)
        if owner_id is not None:
            stmt = stmt.where(Settlement.owner_id == owner_id)
        if status is not None:
            stmt = stmt.where(Settlement.status == SettlementStatus(status))
        stmt = stmt.order_by(Settlement.period.desc(), Settlement.owner_id)
        return list(self.db.scalars(stmt))


__all__ = [
    "SettlementService",
    "SettlementSummary",
    "SettlementFigures",
    "summarize",
]
