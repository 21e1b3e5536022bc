"""Impact calculator: how an obligation affects the owner and the agency.

Rules by obligation type:
- RENT: owner receives amount - commission, agency receives the commission.
  Rent is always paid by the tenant.
- DEBT: credit adjustment granted by the agency to the owner
  (owner_impact = +amount, agency_impact = -amount).
- Anything else: decided by paid_by
  - OWNER: deducted from the owner's settlement (owner_impact = -amount)
  - AGENCY: agency expense (agency_impact = -amount)
  - TENANT: tracking only, no impact on either party

Commission rounding: ROUND_HALF_UP to the currency's minimum unit (0.01),
the single rounding mode used for every commission figure.

The calculator is applied once, when an obligation is created; the returned
figures are frozen on the row.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import NamedTuple

from src.models.obligation import ObligationType, PaidBy
from src.models.owner import CommissionType
from src.services.errors import ValidationError

MONEY_QUANT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Responsible party when the caller does not say
DEFAULT_PAID_BY = {
    ObligationType.RENT: PaidBy.TENANT,
    ObligationType.TAX: PaidBy.OWNER,
    ObligationType.DEBT: PaidBy.AGENCY,
}


def quantize_money(value: Decimal) -> Decimal:
    """Round a money value to 0.01 with ROUND_HALF_UP."""
    return Decimal(str(value)).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def parse_money(value: Decimal | int | str, label: str = "Amount") -> Decimal:
    """Coerce a positive money input to a 0.01-quantized Decimal.

    Values go through str() so a float keeps its printed form. Sub-cent
    precision is an error, not a rounding.

    Raises:
        ValidationError: If the value is not a number, not positive, or
            carries more precision than 0.01
    """
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Invalid {label.lower()}: {value!r}") from e
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{label} must be positive, got {value}")
    quantized = quantize_money(amount)
    if quantized != amount:
        raise ValidationError(f"{label} {value} has more precision than 0.01")
    return quantized


class CommissionTerms(NamedTuple):
    """Commission configuration for rent (from the contract or the owner)."""

    type: CommissionType
    value: Decimal


class Distribution(NamedTuple):
    """Impact figures stamped on an obligation at creation."""

    owner_impact: Decimal
    agency_impact: Decimal
    commission_amount: Decimal
    owner_amount: Decimal


class ImpactService:
    """Derives owner/agency impact and rent commission for new obligations."""

    @staticmethod
    def default_paid_by(obligation_type: ObligationType) -> PaidBy:
        """Responsible party assumed when none is given."""
        return DEFAULT_PAID_BY.get(obligation_type, PaidBy.TENANT)

    @staticmethod
    def commission_for(amount: Decimal, terms: CommissionTerms | None) -> Decimal:
        """Commission carved out of a rent ``amount``.

        Percentage terms take ``value`` percent of the rent; fixed terms take
        ``value`` itself, capped at the rent so owner_amount never goes
        negative. No terms (or a zero value) means no commission.
        """
        if terms is None or terms.value is None:
            return ZERO.quantize(MONEY_QUANT)
        if terms.value < 0:
            raise ValidationError(f"Commission value must not be negative, got {terms.value}")
        if terms.value == 0:
            return ZERO.quantize(MONEY_QUANT)

        if terms.type == CommissionType.PERCENTAGE:
            if terms.value > HUNDRED:
                raise ValidationError(f"Commission percentage above 100: {terms.value}")
            return quantize_money(amount * terms.value / HUNDRED)
        return quantize_money(min(terms.value, amount))

    def calculate_distribution(
        self,
        obligation_type: ObligationType,
        amount: Decimal,
        paid_by: PaidBy | None = None,
        commission_terms: CommissionTerms | None = None,
    ) -> Distribution:
        """Compute the distribution for an obligation.

        Args:
            obligation_type: Obligation type
            amount: Obligation amount (positive)
            paid_by: Responsible party (defaults per type)
            commission_terms: Rent commission terms, ignored for other types

        Returns:
            Distribution with impacts, commission and owner amount

        Raises:
            ValidationError: If amount is not positive
        """
        if amount is None or amount <= 0:
            raise ValidationError(f"Obligation amount must be positive, got {amount}")

        amount = quantize_money(amount)
        paid_by = paid_by or self.default_paid_by(obligation_type)
        zero = ZERO.quantize(MONEY_QUANT)

        if obligation_type == ObligationType.RENT:
            commission = self.commission_for(amount, commission_terms)
            owner_amount = amount - commission
            return Distribution(
                owner_impact=owner_amount,
                agency_impact=commission,
                commission_amount=commission,
                owner_amount=owner_amount,
            )

        if obligation_type == ObligationType.DEBT:
            return Distribution(
                owner_impact=amount,
                agency_impact=-amount,
                commission_amount=zero,
                owner_amount=zero,
            )

        if paid_by == PaidBy.OWNER:
            return Distribution(-amount, zero, zero, zero)
        if paid_by == PaidBy.AGENCY:
            return Distribution(zero, -amount, zero, zero)
        if paid_by == PaidBy.TENANT:
            return Distribution(zero, zero, zero, zero)

        raise ValidationError(f"Unknown paid_by: {paid_by!r}")


__all__ = [
    "ImpactService",
    "CommissionTerms",
    "Distribution",
    "quantize_money",
    "parse_money",
    "MONEY_QUANT",
    "ZERO",
]
