"""Obligation ORM model: a single debt owed by or to one party for one period."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel, enum_column


class ObligationType(str, Enum):
    """What an obligation is for."""

    RENT = "rent"
    EXPENSES = "expenses"
    SERVICE = "service"
    TAX = "tax"
    INSURANCE = "insurance"
    MAINTENANCE = "maintenance"
    DEBT = "debt"
    """Manual debt/credit adjustment between agency and owner"""


class ObligationStatus(str, Enum):
    """Payment status, derived by src.services.obligation_state only."""

    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class PaidBy(str, Enum):
    """Party financially responsible for an obligation."""

    TENANT = "tenant"
    OWNER = "owner"
    AGENCY = "agency"


class Obligation(Base, BaseModel):
    """Model representing one obligation (rent, tax, maintenance, adjustment...).

    Amount fields:
    - amount: total owed, strictly positive
    - paid_amount: cumulative payments applied, 0 <= paid_amount <= amount
    - owner_impact / agency_impact: signed effect on each party once paid
      (positive = party receives, negative = party is charged)
    - commission_amount / owner_amount: rent split, zero for other types

    Impacts are stamped once at creation and never recomputed, so a later
    change to an owner's commission terms leaves history intact.

    ``version`` is an optimistic-lock counter: a flush against a row that
    another transaction updated first raises StaleDataError.
    """

    __tablename__ = "obligations"

    # Anchors
    apartment_id: Mapped[int] = mapped_column(
        ForeignKey("apartments.id"),
        nullable=False,
        index=True,
    )
    contract_id: Mapped[int | None] = mapped_column(
        ForeignKey("contracts.id"),
        nullable=True,
        index=True,
    )

    # Classification
    type: Mapped[ObligationType] = mapped_column(
        enum_column(ObligationType),
        nullable=False,
        index=True,
    )
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Calendar anchors
    period: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
        comment="First day of the month this obligation represents",
    )
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    # Money
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
    )
    status: Mapped[ObligationStatus] = mapped_column(
        enum_column(ObligationStatus),
        nullable=False,
        default=ObligationStatus.PENDING,
        index=True,
    )

    # Distribution (frozen at creation)
    paid_by: Mapped[PaidBy] = mapped_column(
        enum_column(PaidBy),
        nullable=False,
        default=PaidBy.TENANT,
    )
    owner_impact: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    agency_impact: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    commission_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    owner_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Relationships
    apartment: Mapped["Apartment"] = relationship(  # noqa: F821
        "Apartment",
        foreign_keys=[apartment_id],
    )
    contract: Mapped["Contract | None"] = relationship(  # noqa: F821
        "Contract",
        foreign_keys=[contract_id],
    )
    payments: Mapped[list["ObligationPayment"]] = relationship(  # noqa: F821
        "ObligationPayment",
        back_populates="obligation",
        order_by="ObligationPayment.id",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_obligation_amount_positive"),
        CheckConstraint("paid_amount >= 0", name="ck_obligation_paid_non_negative"),
        CheckConstraint("paid_amount <= amount", name="ck_obligation_no_overpayment"),
        Index("idx_obligation_status_due", "status", "due_date"),
        Index("idx_obligation_period_status", "period", "status"),
    )

    @property
    def remaining(self) -> Decimal:
        """Amount still owed."""
        return self.amount - self.paid_amount

    def __repr__(self) -> str:
        return (
            f"<Obligation(id={self.id}, type={self.type}, amount={self.amount}, "
            f"paid_amount={self.paid_amount}, status={self.status}, "
            f"due_date={self.due_date})>"
        )


__all__ = ["Obligation", "ObligationType", "ObligationStatus", "PaidBy"]
