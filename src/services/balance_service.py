"""Owner balance ledger: the single entry point for changing Owner.balance.

Balance sign convention: positive = the agency owes the owner (credit the
owner can draw on), negative = the owner owes the agency.

Every change goes through BalanceService.apply(), which
- updates Owner.balance (version-checked, see Owner.version),
- appends an OwnerBalanceEntry with a reason code and the resulting balance.

apply() never commits: it joins the caller's transaction so that a balance
change and the payment or settlement that caused it land together or not at
all.
"""

import logging
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.models.balance_entry import BalanceReason, OwnerBalanceEntry
from src.models.owner import Owner
from src.services.errors import InsufficientBalanceError, NotFoundError, ValidationError
from src.services.impact_service import quantize_money

logger = logging.getLogger(__name__)


class BalanceReconciliation(NamedTuple):
    """Stored balance compared with the sum of its audit trail."""

    owner_id: int
    stored_balance: Decimal
    ledger_balance: Decimal
    entry_count: int

    @property
    def difference(self) -> Decimal:
        return self.stored_balance - self.ledger_balance

    @property
    def is_consistent(self) -> bool:
        return self.difference == 0


class BalanceService:
    """Apply, inspect and reconcile owner balances."""

    def __init__(self, db: Session):
        """Initialize with database session.

        Args:
            db: Session whose transaction balance changes join
        """
        self.db = db

    def _get_owner(self, owner_id: int) -> Owner:
        owner = self.db.get(Owner, owner_id)
        if owner is None:
            raise NotFoundError(f"Owner {owner_id} not found")
        return owner

    def get_balance(self, owner_id: int) -> Decimal:
        """Current balance of an owner."""
        return self._get_owner(owner_id).balance

    def apply(
        self,
        owner_id: int,
        delta: Decimal,
        reason: BalanceReason,
        payment_id: int | None = None,
        settlement_id: int | None = None,
        note: str | None = None,
        require_funds: bool = False,
    ) -> OwnerBalanceEntry:
        """Move an owner's balance by ``delta`` and record why.

        Args:
            owner_id: Owner whose balance changes
            delta: Signed change (negative = debit)
            reason: Reason code stored on the audit entry
            payment_id: Payment that caused the change, if any
            settlement_id: Settlement that caused the change, if any
            note: Free-text note
            require_funds: Reject a debit larger than the current balance

        Returns:
            The new OwnerBalanceEntry (added to the session, not committed)

        Raises:
            NotFoundError: Unknown owner
            ValidationError: delta is zero
            InsufficientBalanceError: require_funds and balance < -delta
        """
        delta = quantize_money(delta)
        if delta == 0:
            raise ValidationError("Balance change must be non-zero")

        owner = self._get_owner(owner_id)
        if require_funds and delta < 0 and owner.balance < -delta:
            logger.warning(
                "Insufficient balance: owner_id=%s balance=%s requested=%s",
                owner_id,
                owner.balance,
                -delta,
            )
            raise InsufficientBalanceError(
                f"Insufficient owner balance. Available: {owner.balance}, requested: {-delta}"
            )

        owner.balance = owner.balance + delta
        entry = OwnerBalanceEntry(
            owner_id=owner_id,
            delta=delta,
            balance_after=owner.balance,
            reason=reason,
            payment_id=payment_id,
            settlement_id=settlement_id,
            note=note,
        )
        self.db.add(entry)
        logger.info(
            "Owner balance %s: owner_id=%s delta=%s balance_after=%s",
            reason.value,
            owner_id,
            delta,
            owner.balance,
        )
        return entry

    def set_opening_balance(self, owner_id: int, amount: Decimal, note: str | None = None) -> OwnerBalanceEntry:
        """Bring in a balance carried from before the ledger, and commit.

        Raises:
            ValidationError: If the owner already has balance history
        """
        if self.history(owner_id):
            raise ValidationError(f"Owner {owner_id} already has balance history")
        entry = self.apply(owner_id, amount, BalanceReason.OPENING_BALANCE, note=note)
        self.db.commit()
        return entry

    def history(self, owner_id: int) -> list[OwnerBalanceEntry]:
        """Balance entries of an owner, oldest first."""
        self._get_owner(owner_id)
        return list(
            self.db.scalars(
                select(OwnerBalanceEntry)
                .where(OwnerBalanceEntry.owner_id == owner_id)
                .order_by(OwnerBalanceEntry.id)
            )
        )

    def reconcile(self, owner_id: int) -> BalanceReconciliation:
        """Compare the stored balance with the sum of recorded deltas."""
        owner = self._get_owner(owner_id)
        total, count = self.db.execute(
            select(
                func.coalesce(func.sum(OwnerBalanceEntry.delta), 0),
                func.count(OwnerBalanceEntry.id),
            ).where(OwnerBalanceEntry.owner_id == owner_id)
        ).one()
        result = BalanceReconciliation(
            owner_id=owner_id,
            stored_balance=quantize_money(owner.balance),
            ledger_balance=quantize_money(Decimal(str(total))),
            entry_count=count,
        )
        if not result.is_consistent:
            logger.warning(
                "Owner balance out of sync: owner_id=%s stored=%s ledger=%s",
                owner_id,
                result.stored_balance,
                result.ledger_balance,
            )
        return result


__all__ = ["BalanceService", "BalanceReconciliation"]
