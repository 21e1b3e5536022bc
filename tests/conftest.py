"""Pytest configuration: in-memory ledger database and common records."""

import os
from datetime import date
from decimal import Decimal

# Set test database URL BEFORE any imports from src
# This ensures the SessionLocal and engine use an in-memory database
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from src.models import Apartment, Base, CommissionType, Contract, Owner  # noqa: E402
from src.services.obligation_service import ObligationService, ObligationDraft  # noqa: E402


@pytest.fixture
def db_engine():
    """Fresh in-memory database with every ledger table."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Create test database session."""
    SessionLocal = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def owner(db_session):
    """Owner with a 10% commission on rent and an empty balance."""
    owner = Owner(
        name="Laura Gomez",
        balance=Decimal("0.00"),
        commission_type=CommissionType.PERCENTAGE,
        commission_value=Decimal("10"),
    )
    db_session.add(owner)
    db_session.commit()
    return owner


@pytest.fixture
def apartment(db_session, owner):
    """Apartment belonging to ``owner``."""
    apartment = Apartment(label="4B", owner_id=owner.id)
    db_session.add(apartment)
    db_session.commit()
    return apartment


@pytest.fixture
def contract(db_session, apartment):
    """Lease on ``apartment`` without its own commission terms."""
    contract = Contract(
        apartment_id=apartment.id,
        tenant_name="Martin Ruiz",
        start_date=date(2024, 1, 1),
        end_date=date(2025, 12, 31),
    )
    db_session.add(contract)
    db_session.commit()
    return contract


@pytest.fixture
def make_obligation(db_session, apartment):
    """Factory creating obligations through ObligationService.

    Defaults: a 100000.00 expense paid by the tenant for March 2024, due on
    the 10th, evaluated on March 1st (so it starts pending).
    """

    def _make(today=date(2024, 3, 1), **fields):
        values = {
            "type": "expenses",
            "amount": Decimal("100000.00"),
            "description": "Building expenses",
            "period": "2024-03",
            "due_date": date(2024, 3, 10),
            "apartment_id": apartment.id,
        }
        values.update(fields)
        return ObligationService(db_session).create_obligation(ObligationDraft(**values), today=today)

    return _make
