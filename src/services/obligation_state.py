"""Obligation status state machine.

States and transitions:

    pending --(partial payment)--> partial --(remaining paid)--> paid
    pending/partial --(today > due_date)--> overdue
    overdue --(payment)--> overdue (still short) or paid

``paid`` is terminal. ``overdue`` is a lateness modifier on an unpaid or
partially paid obligation, so a late payment that closes the gap resolves
it to ``paid``.

derive_status() is the only place that decides a status; every mutation of
paid_amount, and the overdue sweep, goes through it.
"""

from datetime import date, datetime
from decimal import Decimal

from src.models.obligation import Obligation, ObligationStatus
from src.services.errors import AlreadySettledError, OverpaymentError, ValidationError
from src.services.period_service import as_date


def derive_status(
    amount: Decimal,
    paid_amount: Decimal,
    due_date: date,
    today: date | datetime,
) -> ObligationStatus:
    """Compute the status implied by the amounts and the calendar.

    Args:
        amount: Total owed
        paid_amount: Cumulative amount applied
        due_date: Date payment is expected
        today: Evaluation date (a datetime is reduced to its date)

    Returns:
        ObligationStatus for these inputs
    """
    late = as_date(today) > due_date

    if paid_amount >= amount:
        return ObligationStatus.PAID
    if paid_amount > 0:
        return ObligationStatus.OVERDUE if late else ObligationStatus.PARTIAL
    if late:
        return ObligationStatus.OVERDUE
    return ObligationStatus.PENDING


def check_invariants(obligation: Obligation, today: date | datetime | None = None) -> None:
    """Raise ValidationError if a stored obligation is internally inconsistent.

    Checks 0 <= paid_amount <= amount, amount > 0, and that the stored status
    agrees with paid_amount (paid exactly when fully paid). Given ``today``,
    an overdue row must also be past its due date.
    """
    if obligation.amount is None or obligation.amount <= 0:
        raise ValidationError(f"Obligation {obligation.id} has non-positive amount {obligation.amount}")
    if obligation.paid_amount < 0 or obligation.paid_amount > obligation.amount:
        raise ValidationError(
            f"Obligation {obligation.id} has paid_amount {obligation.paid_amount} "
            f"outside [0, {obligation.amount}]"
        )
    fully_paid = obligation.paid_amount == obligation.amount
    if fully_paid != (obligation.status == ObligationStatus.PAID):
        raise ValidationError(
            f"Obligation {obligation.id} status {obligation.status} disagrees with "
            f"paid_amount {obligation.paid_amount} of {obligation.amount}"
        )
    if (
        today is not None
        and obligation.status == ObligationStatus.OVERDUE
        and not as_date(today) > obligation.due_date
    ):
        raise ValidationError(
            f"Obligation {obligation.id} is overdue but not past its due date "
            f"{obligation.due_date}"
        )


def validate_payment(obligation: Obligation, amount: Decimal) -> None:
    """Check that ``amount`` may be applied to ``obligation`` without mutating it.

    Raises:
        ValidationError: amount is not positive
        AlreadySettledError: obligation is already paid
        OverpaymentError: amount exceeds the remaining balance
    """
    if amount is None or amount <= 0:
        raise ValidationError(f"Payment amount must be positive, got {amount}")
    if obligation.status == ObligationStatus.PAID or obligation.paid_amount >= obligation.amount:
        raise AlreadySettledError(f"Obligation {obligation.id} is already paid")
    remaining = obligation.amount - obligation.paid_amount
    if amount > remaining:
        raise OverpaymentError(
            f"Payment amount ({amount}) exceeds remaining amount ({remaining}) "
            f"of obligation {obligation.id}"
        )


def apply_payment(obligation: Obligation, amount: Decimal, today: date | datetime) -> ObligationStatus:
    """Add ``amount`` to paid_amount and re-derive status.

    Returns:
        The new status
    """
    validate_payment(obligation, amount)
    obligation.paid_amount = obligation.paid_amount + amount
    obligation.status = derive_status(
        obligation.amount, obligation.paid_amount, obligation.due_date, today
    )
    return obligation.status


def refresh_status(obligation: Obligation, today: date | datetime) -> bool:
    """Re-derive status in place. Returns True if it changed."""
    new_status = derive_status(
        obligation.amount, obligation.paid_amount, obligation.due_date, today
    )
    if new_status == obligation.status:
        return False
    obligation.status = new_status
    return True


__all__ = [
    "derive_status",
    "check_invariants",
    "validate_payment",
    "apply_payment",
    "refresh_status",
]
