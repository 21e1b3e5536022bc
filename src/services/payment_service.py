"""Payment recorder: validates and applies payments to obligations.

record_payment() performs, in one transaction:
1. insert the ObligationPayment
2. add the amount to obligation.paid_amount
3. re-derive obligation.status (src.services.obligation_state)
4. for method=owner_balance, debit the apartment owner's balance through
   BalanceService with reason payment_applied

Obligation and Owner rows carry a version counter. If another transaction
updated either row between our read and our write, the flush raises
StaleDataError; the recorder then rolls back, re-reads, re-validates and
re-applies, up to ``retry_attempts`` times before surfacing
ConcurrencyConflictError. Validation failures are never retried.
"""

import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from src.models.balance_entry import BalanceReason
from src.models.obligation import Obligation
from src.models.obligation_payment import ObligationPayment, PaymentMethod
from src.services.balance_service import BalanceService
from src.services.config import get_config
from src.services.directory import LedgerDirectory
from src.services.errors import (
    ConcurrencyConflictError,
    InsufficientBalanceError,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from src.services.impact_service import parse_money
from src.services.obligation_state import apply_payment, validate_payment
from src.services.period_service import as_date

logger = logging.getLogger(__name__)


class PaymentService:
    """Records payments against obligations."""

    def __init__(self, db: Session, retry_attempts: int | None = None):
        """Initialize payment service.

        Args:
            db: SQLAlchemy database session
            retry_attempts: Max attempts on lost update, at least 1
                (default: LedgerConfig.payment_retry_attempts)

        Raises:
            ValidationError: retry_attempts below 1
        """
        if retry_attempts is None:
            retry_attempts = get_config().payment_retry_attempts
        elif retry_attempts < 1:
            raise ValidationError(f"retry_attempts must be at least 1, got {retry_attempts}")
        self.db = db
        self.retry_attempts = retry_attempts
        self.directory = LedgerDirectory(db)
        self.balances = BalanceService(db)

    def record_payment(
        self,
        obligation_id: int,
        amount: Decimal | int | str,
        payment_date: date | datetime,
        method: PaymentMethod | str = PaymentMethod.CASH,
        reference: str | None = None,
        notes: str | None = None,
        today: date | None = None,
    ) -> ObligationPayment:
        """Record a payment against an obligation.

        Args:
            obligation_id: Obligation being paid
            amount: Payment amount (> 0, <= remaining)
            payment_date: Date the money moved
            method: Payment method; owner_balance draws on the owner's balance
            reference: Optional external reference (transfer id, check no.)
            notes: Optional notes
            today: Date used to evaluate lateness (default: today)

        Returns:
            The committed ObligationPayment

        Raises:
            ValidationError: Non-positive amount or unknown method
            AlreadySettledError: Obligation already paid
            OverpaymentError: Amount exceeds remaining balance
            InsufficientBalanceError: owner_balance payment above owner balance
            NotFoundError: Unknown obligation or owner
            ConcurrencyConflictError: Lost update persisted through all retries
        """
        amount = parse_money(amount, "Payment amount")
        try:
            method = PaymentMethod(method)
        except ValueError as e:
            raise ValidationError(f"Unknown payment method: {method!r}") from e
        today = today or date.today()

        last_conflict: StaleDataError | None = None
        for attempt in range(1, self.retry_attempts + 1):
            try:
                payment = self._apply(
                    obligation_id, amount, as_date(payment_date), method, reference, notes, today
                )
                self.db.commit()
            except StaleDataError as e:
                self.db.rollback()
                last_conflict = e
                logger.warning(
                    "Lost update recording payment: obligation_id=%s attempt=%d/%d",
                    obligation_id,
                    attempt,
                    self.retry_attempts,
                )
                continue
            except LedgerError as e:
                self.db.rollback()
                logger.warning(
                    "Payment rejected: obligation_id=%s amount=%s method=%s reason=%s",
                    obligation_id,
                    amount,
                    method.value,
                    e.code,
                )
                raise
            except Exception:
                self.db.rollback()
                raise

            logger.info(
                "Recorded payment %s: obligation_id=%s amount=%s method=%s",
                payment.id,
                obligation_id,
                amount,
                method.value,
            )
            return payment

        raise ConcurrencyConflictError(
            f"Obligation {obligation_id} kept changing while recording payment; "
            f"gave up after {self.retry_attempts} attempts"
        ) from last_conflict

    def _apply(
        self,
        obligation_id: int,
        amount: Decimal,
        payment_date: date,
        method: PaymentMethod,
        reference: str | None,
        notes: str | None,
        today: date,
    ) -> ObligationPayment:
        """One attempt: read fresh state, validate, stage every write."""
        obligation = self.db.get(Obligation, obligation_id, populate_existing=True)
        if obligation is None:
            raise NotFoundError(f"Obligation {obligation_id} not found")

        validate_payment(obligation, amount)

        owner_id = None
        if method == PaymentMethod.OWNER_BALANCE:
            owner_id = self.directory.resolve_owner_id(obligation.apartment_id)
            owner = self.directory.get_owner(owner_id)
            self.db.refresh(owner)
            if owner.balance < amount:
                raise InsufficientBalanceError(
                    f"Insufficient owner balance. Available: {owner.balance}, requested: {amount}"
                )

        payment = ObligationPayment(
            obligation_id=obligation.id,
            amount=amount,
            payment_date=payment_date,
            method=method,
            reference=reference,
            notes=notes,
            owner_id=owner_id,
        )
        self.db.add(payment)

        previous_status = obligation.status
        new_status = apply_payment(obligation, amount, today)
        self.db.flush()

        if owner_id is not None:
            self.balances.apply(
                owner_id,
                -amount,
                BalanceReason.PAYMENT_APPLIED,
                payment_id=payment.id,
                note=f"Obligation {obligation.id}",
                require_funds=True,
            )
            self.db.flush()

        if new_status != previous_status:
            logger.info(
                "Obligation %s status %s -> %s",
                obligation.id,
                previous_status.value if previous_status else None,
                new_status.value,
            )
        return payment

    def get_payment(self, payment_id: int) -> ObligationPayment:
        """Fetch a payment or raise NotFoundError."""
        payment = self.db.get(ObligationPayment, payment_id)
        if payment is None:
            raise NotFoundError(f"Payment {payment_id} not found")
        return payment

    def list_payments_for_contract(self, contract_id: int) -> list[ObligationPayment]:
        """Payments against any obligation of a contract, most recent first.

        Raises:
            NotFoundError: Unknown contract
        """
        self.directory.resolve_contract(contract_id)
        return list(
            self.db.scalars(
                select(ObligationPayment)
                .join(Obligation, ObligationPayment.obligation_id == Obligation.id)
                .where(Obligation.contract_id == contract_id)
                .order_by(ObligationPayment.payment_date.desc(), ObligationPayment.id.desc())
            )
        )

    def list_payments(self, obligation_id: int) -> list[ObligationPayment]:
        """Payments of an obligation in payment-date order."""
        if self.db.get(Obligation, obligation_id) is None:
            raise NotFoundError(f"Obligation {obligation_id} not found")
        return list(
            self.db.scalars(
                select(ObligationPayment)
                .where(ObligationPayment.obligation_id == obligation_id)
                .order_by(ObligationPayment.payment_date, ObligationPayment.id)
            )
        )


__all__ = ["PaymentService"]
