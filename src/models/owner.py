"""Owner ORM model: the property owner whose running balance the ledger maintains."""

from decimal import Decimal
from enum import Enum

from sqlalchemy import Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel, enum_column


class CommissionType(str, Enum):
    """How the agency's cut of rent is expressed."""

    PERCENTAGE = "percentage"
    """commission_value is a percent of the rent (10 means 10%)"""

    FIXED = "fixed"
    """commission_value is a flat amount per rent obligation"""


class Owner(Base, BaseModel):
    """Model representing a property owner.

    Owner records are maintained by the host application. The ledger reads the
    commission terms and owns exactly one field: ``balance``.

    Balance sign convention:
    - positive: the agency owes the owner (credit the owner can draw on)
    - negative: the owner owes the agency

    ``balance`` is only written through BalanceService.apply(), which records
    an OwnerBalanceEntry for every change. ``version`` guards concurrent
    writes (optimistic locking).
    """

    __tablename__ = "owners"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Owner display name",
    )

    balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Signed running balance (positive = agency owes owner)",
    )

    # Default commission terms for rent on this owner's units
    commission_type: Mapped[CommissionType | None] = mapped_column(
        enum_column(CommissionType),
        nullable=True,
    )
    commission_value: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Percent (for percentage) or flat amount (for fixed)",
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Relationships
    apartments: Mapped[list["Apartment"]] = relationship(  # noqa: F821
        "Apartment",
        back_populates="owner",
    )
    balance_entries: Mapped[list["OwnerBalanceEntry"]] = relationship(  # noqa: F821
        "OwnerBalanceEntry",
        back_populates="owner",
        order_by="OwnerBalanceEntry.id",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Owner(id={self.id}, name={self.name!r}, balance={self.balance})>"


__all__ = ["Owner", "CommissionType"]
