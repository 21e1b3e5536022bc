"""Obligation management service: creation and queries.

create_obligation() is the only way obligations enter the ledger. It
anchors the obligation to an apartment (directly or through its contract),
stamps the owner/agency impact once via ImpactService, normalizes the period
to the first of the month and derives the initial status.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from src.models.apartment import Apartment
from src.models.obligation import Obligation, ObligationStatus, ObligationType, PaidBy
from src.services.directory import LedgerDirectory
from src.services.errors import NotFoundError, ValidationError
from src.services.impact_service import Distribution, ImpactService, parse_money, quantize_money
from src.services.obligation_state import derive_status
from src.services.period_service import as_date, normalize_period, period_bounds

logger = logging.getLogger(__name__)


@dataclass
class ObligationDraft:
    """Input for create_obligation().

    Either apartment_id or contract_id must be given; with a contract the
    apartment is taken from it. owner_impact/agency_impact are a manual
    distribution, accepted for DEBT adjustments only.
    """

    type: ObligationType | str
    amount: Decimal | int | str
    description: str
    period: date | datetime | str
    due_date: date | datetime
    apartment_id: int | None = None
    contract_id: int | None = None
    paid_by: PaidBy | str | None = None
    category: str | None = None
    notes: str | None = None
    owner_impact: Decimal | None = None
    agency_impact: Decimal | None = None


class OwnerPosition(NamedTuple):
    """Open (not yet paid) impact on an owner."""

    owner_id: int
    pending_income: Decimal
    pending_charges: Decimal
    open_obligations: int


class ObligationService:
    """Create and query obligations."""

    def __init__(self, db: Session):
        """Initialize with database session."""
        self.db = db
        self.directory = LedgerDirectory(db)
        self.impacts = ImpactService()

    def create_obligation(self, draft: ObligationDraft, today: date | None = None) -> Obligation:
        """Create an obligation with its impact figures frozen.

        Args:
            draft: Obligation fields
            today: Date used for the initial status (default: today)

        Returns:
            Committed Obligation

        Raises:
            ValidationError: Bad type/amount/paid_by, missing anchor,
                apartment/contract mismatch, manual impacts on non-debt
            NotFoundError: Unknown apartment, contract or owner
        """
        today = today or date.today()
        obligation_type = self._parse_enum(ObligationType, draft.type, "type")
        paid_by = self._parse_enum(PaidBy, draft.paid_by, "paid_by") if draft.paid_by else None
        amount = parse_money(draft.amount, "Obligation amount")
        if not draft.description or not draft.description.strip():
            raise ValidationError("Obligation description is required")

        apartment_id = self._resolve_apartment(draft.apartment_id, draft.contract_id)
        owner_id = self.directory.resolve_owner_id(apartment_id)

        if obligation_type == ObligationType.RENT:
            if paid_by not in (None, PaidBy.TENANT):
                raise ValidationError("Rent obligations are always paid by the tenant")
            paid_by = PaidBy.TENANT
        paid_by = paid_by or self.impacts.default_paid_by(obligation_type)

        if draft.owner_impact is not None or draft.agency_impact is not None:
            distribution = self._manual_distribution(obligation_type, amount, draft)
        else:
            terms = None
            if obligation_type == ObligationType.RENT:
                terms = self.directory.commission_terms(owner_id, draft.contract_id)
            distribution = self.impacts.calculate_distribution(
                obligation_type, amount, paid_by, terms
            )

        due_date = as_date(draft.due_date)
        obligation = Obligation(
            apartment_id=apartment_id,
            contract_id=draft.contract_id,
            type=obligation_type,
            category=draft.category,
            description=draft.description.strip(),
            notes=draft.notes,
            period=normalize_period(draft.period),
            due_date=due_date,
            amount=amount,
            paid_amount=Decimal("0.00"),
            status=derive_status(amount, Decimal("0"), due_date, today),
            paid_by=paid_by,
            owner_impact=distribution.owner_impact,
            agency_impact=distribution.agency_impact,
            commission_amount=distribution.commission_amount,
            owner_amount=distribution.owner_amount,
        )
        self.db.add(obligation)
        self.db.commit()
        self.db.refresh(obligation)

        logger.info(
            "Created obligation %s: type=%s amount=%s apartment_id=%s owner_impact=%s "
            "agency_impact=%s commission=%s status=%s",
            obligation.id,
            obligation_type.value,
            amount,
            apartment_id,
            distribution.owner_impact,
            distribution.agency_impact,
            distribution.commission_amount,
            obligation.status.value,
        )
        return obligation

    @staticmethod
    def _parse_enum(enum_cls, value, field: str):
        try:
            return enum_cls(value)
        except ValueError as e:
            allowed = ", ".join(m.value for m in enum_cls)
            raise ValidationError(f"Invalid {field}: {value!r}. Expected one of: {allowed}") from e

    def _resolve_apartment(self, apartment_id: int | None, contract_id: int | None) -> int:
        if contract_id is not None:
            parties = self.directory.resolve_contract(contract_id)
            if apartment_id is not None and apartment_id != parties.apartment_id:
                raise ValidationError(
                    f"Contract {contract_id} belongs to apartment {parties.apartment_id}, "
                    f"not {apartment_id}"
                )
            return parties.apartment_id
        if apartment_id is None:
            raise ValidationError("Either apartment_id or contract_id is required")
        return apartment_id

    @staticmethod
    def _manual_distribution(
        obligation_type: ObligationType, amount: Decimal, draft: ObligationDraft
    ) -> Distribution:
        if obligation_type != ObligationType.DEBT:
            raise ValidationError("Manual owner/agency impact is only allowed for debt adjustments")
        owner_impact = quantize_money(draft.owner_impact or 0)
        agency_impact = quantize_money(draft.agency_impact or 0)
        if abs(owner_impact) > amount or abs(agency_impact) > amount:
            raise ValidationError("Manual impact cannot exceed the obligation amount")
        zero = Decimal("0.00")
        return Distribution(owner_impact, agency_impact, zero, zero)

    def get_obligation(self, obligation_id: int) -> Obligation:
        """Fetch an obligation or raise NotFoundError."""
        obligation = self.db.get(Obligation, obligation_id)
        if obligation is None:
            raise NotFoundError(f"Obligation {obligation_id} not found")
        return obligation

    def list_obligations(
        self,
        status: ObligationStatus | None = None,
        apartment_id: int | None = None,
        owner_id: int | None = None,
        period: date | str | None = None,
        contract_id: int | None = None,
        obligation_type: ObligationType | str | None = None,
    ) -> list[Obligation]:
        """List obligations, newest period first, filtered by any given field."""
        stmt = select(Obligation)
        if status is not None:
            stmt = stmt.where(Obligation.status == ObligationStatus(status))
        if obligation_type is not None:
            stmt = stmt.where(
                Obligation.type == self._parse_enum(ObligationType, obligation_type, "type")
            )
        if contract_id is not None:
            stmt = stmt.where(Obligation.contract_id == contract_id)
        if apartment_id is not None:
            stmt = stmt.where(Obligation.apartment_id == apartment_id)
        if owner_id is not None:
            stmt = stmt.join(Apartment, Obligation.apartment_id == Apartment.id).where(
                Apartment.owner_id == owner_id
            )
        if period is not None:
            start, end = period_bounds(period)
            stmt = stmt.where(Obligation.period >= start, Obligation.period < end)
        stmt = stmt.order_by(Obligation.period.desc(), Obligation.due_date, Obligation.id)
        return list(self.db.scalars(stmt))

    def list_overdue(self, today: date | None = None) -> list[Obligation]:
        """Unpaid obligations past due, whether or not the sweep has flagged them yet."""
        today = today or date.today()
        stmt = (
            select(Obligation)
            .where(
                or_(
                    Obligation.status == ObligationStatus.OVERDUE,
                    (
                        Obligation.status.in_([ObligationStatus.PENDING, ObligationStatus.PARTIAL])
                        & (Obligation.due_date < today)
                    ),
                )
            )
            .order_by(Obligation.due_date, Obligation.id)
        )
        return list(self.db.scalars(stmt))

    def get_owner_position(self, owner_id: int, period: date | str | None = None) -> OwnerPosition:
        """Sum the owner impact of obligations not yet fully paid.

        Shows what the owner stands to receive (pending_income) and be
        charged (pending_charges) once open obligations are paid, optionally
        for a single month.
        """
        self.directory.get_owner(owner_id)
        open_obligations = self.list_obligations(owner_id=owner_id, period=period)
        open_obligations = [o for o in open_obligations if o.status != ObligationStatus.PAID]

        pending_income = sum((o.owner_impact for o in open_obligations if o.owner_impact > 0), Decimal("0"))
        pending_charges = sum((-o.owner_impact for o in open_obligations if o.owner_impact < 0), Decimal("0"))
        return OwnerPosition(
            owner_id=owner_id,
            pending_income=quantize_money(pending_income),
            pending_charges=quantize_money(pending_charges),
            open_obligations=len(open_obligations),
        )


__all__ = ["ObligationService", "ObligationDraft", "OwnerPosition"]
