"""Ledger API endpoints: obligations, payments, settlements and balances."""

import logging
from datetime import date, datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from src.models.balance_entry import BalanceReason
from src.models.obligation import ObligationStatus, ObligationType, PaidBy
from src.models.obligation_payment import PaymentMethod
from src.models.settlement import SettlementDisposition, SettlementStatus
from src.services import get_db
from src.services.balance_service import BalanceService
from src.services.obligation_service import ObligationService, ObligationDraft
from src.services.overdue_service import OverdueService
from src.services.payment_service import PaymentService
from src.services.period_service import format_period
from src.services.settlement_service import SettlementService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["ledger"])


# Request schemas
class ObligationCreateRequest(BaseModel):
    """Body of POST /api/obligations."""

    type: ObligationType
    amount: Decimal
    description: str = Field(min_length=1, max_length=500)
    period: str  # YYYY-MM or any ISO date in the month
    due_date: date
    apartment_id: int | None = None
    contract_id: int | None = None
    paid_by: PaidBy | None = None
    category: str | None = None
    notes: str | None = None
    owner_impact: Decimal | None = None  # manual distribution, debt only
    agency_impact: Decimal | None = None


class PaymentCreateRequest(BaseModel):
    """Body of POST /api/obligations/{id}/payments."""

    amount: Decimal
    payment_date: date
    method: PaymentMethod = PaymentMethod.CASH
    reference: str | None = None
    notes: str | None = None


class SweepRequest(BaseModel):
    """Body of POST /api/obligations/sweep-overdue."""

    as_of: date | None = None


class SettlementCreateRequest(BaseModel):
    """Body of POST /api/settlements."""

    owner_id: int
    period: str


class SettleRequest(BaseModel):
    """Body of POST /api/settlements/{id}/settle."""

    method: str = Field(min_length=1, max_length=50)
    disposition: SettlementDisposition
    reference: str | None = None
    notes: str | None = None
    recompute: bool = False


# Response schemas
class ObligationResponse(BaseModel):
    """Obligation as returned by the API."""

    id: int
    apartment_id: int
    contract_id: int | None
    type: ObligationType
    category: str | None
    description: str
    notes: str | None
    period: date
    due_date: date
    amount: Decimal
    paid_amount: Decimal
    remaining: Decimal
    status: ObligationStatus
    paid_by: PaidBy
    owner_impact: Decimal
    agency_impact: Decimal
    commission_amount: Decimal
    owner_amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class PaymentResponse(BaseModel):
    """Recorded payment."""

    id: int
    obligation_id: int
    amount: Decimal
    payment_date: date
    method: PaymentMethod
    reference: str | None
    notes: str | None
    owner_id: int | None

    model_config = ConfigDict(from_attributes=True)


class SweepResponse(BaseModel):
    """Overdue sweep outcome."""

    count: int
    errors: list[dict]
    skipped: list[int]


class SettlementPreviewResponse(BaseModel):
    """Settlement figures computed on the fly."""

    owner_id: int
    period: str
    total_income: Decimal
    total_expenses: Decimal
    commission_amount: Decimal
    net_amount: Decimal
    obligation_count: int
    owner_balance: Decimal
    obligation_ids: list[int]


class SettlementResponse(BaseModel):
    """Recorded settlement."""

    id: int
    owner_id: int
    period: date
    total_income: Decimal
    total_expenses: Decimal
    commission_amount: Decimal
    net_amount: Decimal
    obligation_count: int
    status: SettlementStatus
    settled_at: datetime | None
    disposition: SettlementDisposition | None
    payment_method: str | None
    reference: str | None
    notes: str | None

    model_config = ConfigDict(from_attributes=True)


class BalanceEntryResponse(BaseModel):
    """One owner balance movement."""

    id: int
    delta: Decimal
    balance_after: Decimal
    reason: BalanceReason
    payment_id: int | None
    settlement_id: int | None
    note: str | None

    model_config = ConfigDict(from_attributes=True)


class OwnerBalanceResponse(BaseModel):
    """Owner balance with its audit trail."""

    owner_id: int
    balance: Decimal
    is_consistent: bool
    entries: list[BalanceEntryResponse]


# Obligations
@router.post("/obligations", response_model=ObligationResponse, status_code=201)
def create_obligation(
    request: ObligationCreateRequest,
    db: Session = Depends(get_db),  # noqa: B008
) -> ObligationResponse:
    """Create an obligation."""
    obligation = ObligationService(db).create_obligation(ObligationDraft(**request.model_dump()))
    return ObligationResponse.model_validate(obligation)


@router.get("/obligations", response_model=list[ObligationResponse])
def list_obligations(
    status: ObligationStatus | None = None,
    apartment_id: int | None = None,
    owner_id: int | None = None,
    period: str | None = None,
    contract_id: int | None = None,
    obligation_type: ObligationType | None = Query(None, alias="type"),  # noqa: B008
    db: Session = Depends(get_db),  # noqa: B008
) -> list[ObligationResponse]:
    """List obligations with optional filters."""
    obligations = ObligationService(db).list_obligations(
        status=status,
        apartment_id=apartment_id,
        owner_id=owner_id,
        period=period,
        contract_id=contract_id,
        obligation_type=obligation_type,
    )
    return [ObligationResponse.model_validate(o) for o in obligations]


@router.post("/obligations/sweep-overdue", response_model=SweepResponse)
def sweep_overdue(
    request: SweepRequest | None = None,
    db: Session = Depends(get_db),  # noqa: B008
) -> SweepResponse:
    """Run one overdue sweep (default: as of today)."""
    result = OverdueService(db).sweep_overdue(request.as_of if request else None)
    return SweepResponse(
        count=result.count,
        errors=[{"obligation_id": oid, "message": msg} for oid, msg in result.errors],
        skipped=result.skipped,
    )


@router.get("/obligations/{obligation_id}", response_model=ObligationResponse)
def get_obligation(
    obligation_id: int,
    db: Session = Depends(get_db),  # noqa: B008
) -> ObligationResponse:
    """Fetch one obligation."""
    return ObligationResponse.model_validate(ObligationService(db).get_obligation(obligation_id))


@router.post(
    "/obligations/{obligation_id}/payments", response_model=PaymentResponse, status_code=201
)
def record_payment(
    obligation_id: int,
    request: PaymentCreateRequest,
    db: Session = Depends(get_db),  # noqa: B008
) -> PaymentResponse:
    """Record a payment against an obligation."""
    payment = PaymentService(db).record_payment(
        obligation_id,
        request.amount,
        request.payment_date,
        method=request.method,
        reference=request.reference,
        notes=request.notes,
    )
    return PaymentResponse.model_validate(payment)


@router.get("/obligations/{obligation_id}/payments", response_model=list[PaymentResponse])
def list_payments(
    obligation_id: int,
    db: Session = Depends(get_db),  # noqa: B008
) -> list[PaymentResponse]:
    """Payments of one obligation."""
    payments = PaymentService(db).list_payments(obligation_id)
    return [PaymentResponse.model_validate(p) for p in payments]


@router.get("/contracts/{contract_id}/payments", response_model=list[PaymentResponse])
def list_contract_payments(
    contract_id: int,
    db: Session = Depends(get_db),  # noqa: B008
) -> list[PaymentResponse]:
    """Payments across every obligation of a contract, most recent first."""
    payments = PaymentService(db).list_payments_for_contract(contract_id)
    return [PaymentResponse.model_validate(p) for p in payments]


# Settlements
@router.get("/settlements/preview", response_model=SettlementPreviewResponse)
def preview_settlement(
    owner_id: int = Query(...),  # noqa: B008
    period: str = Query(..., description="YYYY-MM"),  # noqa: B008
    db: Session = Depends(get_db),  # noqa: B008
) -> SettlementPreviewResponse:
    """Compute an owner's settlement for a month without storing it."""
    summary = SettlementService(db).compute_settlement(owner_id, period)
    return SettlementPreviewResponse(
        owner_id=summary.owner_id,
        period=format_period(summary.period),
        total_income=summary.total_income,
        total_expenses=summary.total_expenses,
        commission_amount=summary.commission_amount,
        net_amount=summary.net_amount,
        obligation_count=summary.obligation_count,
        owner_balance=summary.owner_balance,
        obligation_ids=list(summary.obligation_ids),
    )


@router.get("/settlements", response_model=list[SettlementResponse])
def list_settlements(
    owner_id: int | None = None,
    status: SettlementStatus | None = None,
    db: Session = Depends(get_db),  # noqa: B008
) -> list[SettlementResponse]:
    """List recorded settlements."""
    settlements = SettlementService(db).list_settlements(owner_id=owner_id, status=status)
    return [SettlementResponse.model_validate(s) for s in settlements]


@router.post("/settlements", response_model=SettlementResponse, status_code=201)
def record_settlement(
    request: SettlementCreateRequest,
    db: Session = Depends(get_db),  # noqa: B008
) -> SettlementResponse:
    """Record (or refresh) a pending settlement."""
    settlement = SettlementService(db).record_settlement(request.owner_id, request.period)
    return SettlementResponse.model_validate(settlement)


@router.post("/settlements/{settlement_id}/settle", response_model=SettlementResponse)
def settle(
    settlement_id: int,
    request: SettleRequest,
    db: Session = Depends(get_db),  # noqa: B008
) -> SettlementResponse:
    """Mark a pending settlement as settled."""
    settlement = SettlementService(db).mark_as_settled(
        settlement_id,
        request.method,
        request.reference,
        request.disposition,
        notes=request.notes,
        recompute=request.recompute,
    )
    return SettlementResponse.model_validate(settlement)


# Owners
@router.get("/owners/{owner_id}/balance", response_model=OwnerBalanceResponse)
def get_owner_balance(
    owner_id: int,
    db: Session = Depends(get_db),  # noqa: B008
) -> OwnerBalanceResponse:
    """Owner balance, its movements and whether they add up."""
    balances = BalanceService(db)
    reconciliation = balances.reconcile(owner_id)
    return OwnerBalanceResponse(
        owner_id=owner_id,
        balance=reconciliation.stored_balance,
        is_consistent=reconciliation.is_consistent,
        entries=[BalanceEntryResponse.model_validate(e) for e in balances.history(owner_id)],
    )


__all__ = ["router"]
