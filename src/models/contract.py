"""Contract ORM model: a lease tying a tenant to an apartment."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel, enum_column
from src.models.owner import CommissionType


class Contract(Base, BaseModel):
    """Model representing a rental contract.

    Maintained by the host application. A contract may carry its own
    commission terms; when it does, they take precedence over the owner's
    defaults for rent obligations created under it.
    """

    __tablename__ = "contracts"

    apartment_id: Mapped[int] = mapped_column(
        ForeignKey("apartments.id"),
        nullable=False,
        index=True,
    )
    tenant_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    commission_type: Mapped[CommissionType | None] = mapped_column(
        enum_column(CommissionType),
        nullable=True,
    )
    commission_value: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2),
        nullable=True,
    )

    # Relationships
    apartment: Mapped["Apartment"] = relationship(  # noqa: F821
        "Apartment",
        back_populates="contracts",
        foreign_keys=[apartment_id],
    )

    def __repr__(self) -> str:
        return (
            f"<Contract(id={self.id}, apartment_id={self.apartment_id}, "
            f"tenant_name={self.tenant_name!r})>"
        )


__all__ = ["Contract"]
