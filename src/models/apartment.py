"""Apartment ORM model: the unit every obligation is anchored to."""

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel


class Apartment(Base, BaseModel):
    """Model representing a rentable unit.

    Maintained by the host application; the ledger only uses it to resolve
    which owner an obligation belongs to.
    """

    __tablename__ = "apartments"

    label: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Unit label (e.g., '3B', 'Av. Libertador 1200 - 4A')",
    )

    owner_id: Mapped[int] = mapped_column(
        ForeignKey("owners.id"),
        nullable=False,
        index=True,
    )

    # Relationships
    owner: Mapped["Owner"] = relationship(  # noqa: F821
        "Owner",
        back_populates="apartments",
        foreign_keys=[owner_id],
    )
    contracts: Mapped[list["Contract"]] = relationship(  # noqa: F821
        "Contract",
        back_populates="apartment",
    )

    def __repr__(self) -> str:
        return f"<Apartment(id={self.id}, label={self.label!r}, owner_id={self.owner_id})>"


__all__ = ["Apartment"]
