"""ObligationPayment ORM model: one recorded transfer of money against an obligation."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel, enum_column


class PaymentMethod(str, Enum):
    """How a payment was made."""

    CASH = "cash"
    TRANSFER = "transfer"
    CHECK = "check"
    CARD = "card"
    OWNER_BALANCE = "owner_balance"
    """Drawn from the owner's standing balance, no real money movement"""
    OTHER = "other"


class ObligationPayment(Base, BaseModel):
    """Model representing a payment applied to exactly one obligation.

    Payments are append-only: corrections are recorded as new payments, never
    as edits, so the payment history is the audit trail of paid_amount.
    """

    __tablename__ = "obligation_payments"

    obligation_id: Mapped[int] = mapped_column(
        ForeignKey("obligations.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    method: Mapped[PaymentMethod] = mapped_column(
        enum_column(PaymentMethod),
        nullable=False,
    )
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Set only for owner_balance payments
    owner_id: Mapped[int | None] = mapped_column(
        ForeignKey("owners.id"),
        nullable=True,
        index=True,
        comment="Owner whose balance funded this payment",
    )

    # Relationships
    obligation: Mapped["Obligation"] = relationship(  # noqa: F821
        "Obligation",
        back_populates="payments",
        foreign_keys=[obligation_id],
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        Index("idx_payment_obligation_date", "obligation_id", "payment_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<ObligationPayment(id={self.id}, obligation_id={self.obligation_id}, "
            f"amount={self.amount}, method={self.method}, date={self.payment_date})>"
        )


__all__ = ["ObligationPayment", "PaymentMethod"]
