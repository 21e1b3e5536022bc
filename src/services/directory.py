"""Read-only lookups into records owned by the host application.

The ledger receives already-validated identifiers; this module answers the
three questions it needs about them: which owner an apartment belongs to,
which tenant/apartment a contract refers to, and which commission terms
apply to rent.
"""

import logging
from typing import NamedTuple

from sqlalchemy.orm import Session

from src.models.apartment import Apartment
from src.models.contract import Contract
from src.models.owner import Owner
from src.services.errors import NotFoundError
from src.services.impact_service import CommissionTerms

logger = logging.getLogger(__name__)


class ContractParties(NamedTuple):
    """Who and what a contract refers to."""

    contract_id: int
    apartment_id: int
    tenant_name: str


class LedgerDirectory:
    """Resolve apartments, contracts and commission terms."""

    def __init__(self, db: Session):
        """Initialize with database session."""
        self.db = db

    def get_owner(self, owner_id: int) -> Owner:
        """Fetch an owner or raise NotFoundError."""
        owner = self.db.get(Owner, owner_id)
        if owner is None:
            raise NotFoundError(f"Owner {owner_id} not found")
        return owner

    def resolve_owner_id(self, apartment_id: int) -> int:
        """Owner of an apartment.

        Raises:
            NotFoundError: If the apartment does not exist
        """
        apartment = self.db.get(Apartment, apartment_id)
        if apartment is None:
            raise NotFoundError(f"Apartment {apartment_id} not found")
        return apartment.owner_id

    def resolve_contract(self, contract_id: int) -> ContractParties:
        """Apartment and tenant of a contract.

        Raises:
            NotFoundError: If the contract does not exist
        """
        contract = self.db.get(Contract, contract_id)
        if contract is None:
            raise NotFoundError(f"Contract {contract_id} not found")
        return ContractParties(
            contract_id=contract.id,
            apartment_id=contract.apartment_id,
            tenant_name=contract.tenant_name,
        )

    def commission_terms(
        self, owner_id: int, contract_id: int | None = None
    ) -> CommissionTerms | None:
        """Commission terms for rent: the contract's own, else the owner's.

        Returns:
            CommissionTerms, or None when neither defines a commission
        """
        if contract_id is not None:
            contract = self.db.get(Contract, contract_id)
            if contract is not None and contract.commission_type is not None:
                return CommissionTerms(contract.commission_type, contract.commission_value)

        owner = self.get_owner(owner_id)
        if owner.commission_type is None:
            logger.debug("Owner %s has no commission terms", owner_id)
            return None
        return CommissionTerms(owner.commission_type, owner.commission_value)


__all__ = ["LedgerDirectory", "ContractParties"]
