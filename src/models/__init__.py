"""SQLAlchemy base model with common fields and model exports."""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import DateTime
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

# Base class for all models
Base = declarative_base()


class BaseModel:
    """Base model with common timestamp fields."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


def enum_column(enum_cls: type[Enum]) -> SQLEnum:
    """Column type storing a str Enum by value (e.g. 'paid', not 'PAID')."""
    return SQLEnum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=32,
        validate_strings=True,
    )


# Import models to register them with Base (after Base is defined)
# This must be after Base declaration to avoid circular imports
from src.models.owner import CommissionType, Owner  # noqa: E402
from src.models.apartment import Apartment  # noqa: E402
from src.models.contract import Contract  # noqa: E402
from src.models.obligation import (  # noqa: E402
    Obligation,
    ObligationStatus,
    ObligationType,
    PaidBy,
)
from src.models.obligation_payment import ObligationPayment, PaymentMethod  # noqa: E402
from src.models.balance_entry import BalanceReason, OwnerBalanceEntry  # noqa: E402
from src.models.settlement import (  # noqa: E402
    Settlement,
    SettlementDisposition,
    SettlementStatus,
)
from src.models.accounting_entry import AccountingEntry, AccountingEntryType  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "enum_column",
    "Owner",
    "CommissionType",
    "Apartment",
    "Contract",
    "Obligation",
    "ObligationStatus",
    "ObligationType",
    "PaidBy",
    "ObligationPayment",
    "PaymentMethod",
    "OwnerBalanceEntry",
    "BalanceReason",
    "Settlement",
    "SettlementStatus",
    "SettlementDisposition",
    "AccountingEntry",
    "AccountingEntryType",
]
