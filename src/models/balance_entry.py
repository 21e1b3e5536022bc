"""Owner balance audit trail: one row per change to Owner.balance."""

from decimal import Decimal
from enum import Enum

from sqlalchemy import ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel, enum_column


class BalanceReason(str, Enum):
    """Why an owner's balance moved."""

    PAYMENT_APPLIED = "payment_applied"
    """Balance drawn to pay an obligation (method=owner_balance)"""

    SETTLEMENT_CREDITED = "settlement_credited"
    """Settlement net amount kept on account instead of paid out"""

    SETTLEMENT_PAID_OUT = "settlement_paid_out"
    """Carried balance paid out together with a settlement"""

    OPENING_BALANCE = "opening_balance"
    """Balance brought in from before the ledger tracked this owner"""


class OwnerBalanceEntry(Base, BaseModel):
    """Append-only record of a single owner balance mutation.

    Records who (owner_id) moved by how much (delta), why (reason), what the
    balance was afterwards (balance_after) and which payment or settlement
    caused it.
    """

    __tablename__ = "owner_balance_entries"

    owner_id: Mapped[int] = mapped_column(
        ForeignKey("owners.id"),
        nullable=False,
        index=True,
    )
    delta: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    reason: Mapped[BalanceReason] = mapped_column(
        enum_column(BalanceReason),
        nullable=False,
    )
    payment_id: Mapped[int | None] = mapped_column(
        ForeignKey("obligation_payments.id"),
        nullable=True,
    )
    settlement_id: Mapped[int | None] = mapped_column(
        ForeignKey("settlements.id"),
        nullable=True,
    )
    note: Mapped[str | None] = mapped_column(String(500), nullable=True)

    owner: Mapped["Owner"] = relationship(  # noqa: F821
        "Owner",
        back_populates="balance_entries",
        foreign_keys=[owner_id],
    )

    __table_args__ = (Index("idx_balance_entry_owner", "owner_id", "id"),)

    def __repr__(self) -> str:
        return (
            f"<OwnerBalanceEntry(id={self.id}, owner_id={self.owner_id}, "
            f"delta={self.delta}, reason={self.reason}, balance_after={self.balance_after})>"
        )


__all__ = ["OwnerBalanceEntry", "BalanceReason"]
