"""Agency accounting entry model (commission income registered at settlement)."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from src.models import Base, BaseModel, enum_column


class AccountingEntryType(str, Enum):
    """Kinds of agency-side entries."""

    COMMISSION = "commission"


class AccountingEntry(Base, BaseModel):
    """Agency income or expense line tied to a settlement."""

    __tablename__ = "accounting_entries"

    type: Mapped[AccountingEntryType] = mapped_column(
        enum_column(AccountingEntryType),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    period: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    owner_id: Mapped[int | None] = mapped_column(ForeignKey("owners.id"), nullable=True)
    settlement_id: Mapped[int | None] = mapped_column(
        ForeignKey("settlements.id"),
        nullable=True,
        unique=True,
    )

    def __repr__(self) -> str:
        return (
            f"<AccountingEntry(id={self.id}, type={self.type}, amount={self.amount}, "
            f"settlement_id={self.settlement_id})>"
        )


__all__ = ["AccountingEntry", "AccountingEntryType"]
