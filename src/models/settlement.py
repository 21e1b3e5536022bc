"""Settlement model - monthly owner reconciliation (pending/settled state machine)."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel, enum_column


class SettlementStatus(str, Enum):
    """Settlement status enumeration."""

    PENDING = "pending"
    SETTLED = "settled"


class SettlementDisposition(str, Enum):
    """What happens to the money when a settlement is marked settled."""

    PAID_OUT = "paid_out"
    """Net amount paid to the owner directly; balance untouched"""

    CREDITED_TO_BALANCE = "credited_to_balance"
    """Net amount added to the owner's balance instead of paid out"""

    PAID_OUT_WITH_BALANCE = "paid_out_with_balance"
    """Net amount plus the carried balance paid out; balance zeroed"""


class Settlement(Base, BaseModel):
    """Recorded settlement for one owner and one month.

    Attributes:
        owner_id: Owner being settled
        period: First day of the settled month
        total_income: Gross income collected for the owner
        total_expenses: Charges deducted from the owner
        commission_amount: Agency commission on rent
        net_amount: total_income - total_expenses - commission_amount
        obligation_count: Number of paid obligations aggregated
        status: PENDING (recorded) or SETTLED (final)
        disposition: How the net amount was delivered (set when settled)

    ``version`` makes a second writer of the same settlement fail with
    StaleDataError instead of settling it twice.
    """

    __tablename__ = "settlements"

    owner_id: Mapped[int] = mapped_column(
        ForeignKey("owners.id"),
        nullable=False,
        index=True,
    )
    period: Mapped[date] = mapped_column(Date, nullable=False)

    total_income: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_expenses: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    commission_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    obligation_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[SettlementStatus] = mapped_column(
        enum_column(SettlementStatus),
        nullable=False,
        default=SettlementStatus.PENDING,
        index=True,
    )
    settled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    disposition: Mapped[SettlementDisposition | None] = mapped_column(
        enum_column(SettlementDisposition),
        nullable=True,
    )
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    owner: Mapped["Owner"] = relationship(  # noqa: F821
        "Owner",
        foreign_keys=[owner_id],
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("owner_id", "period", name="uq_settlement_owner_period"),
    )

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<Settlement(id={self.id}, owner_id={self.owner_id}, period={self.period}, "
            f"net_amount={self.net_amount}, status={self.status})>"
        )


__all__ = ["Settlement", "SettlementStatus", "SettlementDisposition"]
