"""Overdue sweeper: flags unpaid obligations whose due date has passed.

Meant to run from a scheduled job (see src.cli.sweep). Each row is committed
on its own so that one bad row or one concurrent payment never blocks the
rest of the sweep. Running it twice for the same date changes nothing the
second time.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from src.models.obligation import Obligation, ObligationStatus
from src.services.errors import ValidationError
from src.services.obligation_state import check_invariants, refresh_status
from src.services.period_service import as_date

logger = logging.getLogger(__name__)

SWEEPABLE_STATUSES = (ObligationStatus.PENDING, ObligationStatus.PARTIAL)


@dataclass
class SweepResult:
    """Outcome of one sweep.

    Attributes:
        count: Obligations moved to overdue
        errors: (obligation_id, message) for rows that failed their checks
        skipped: Obligation ids left alone because a payment got there first
    """

    count: int = 0
    errors: list[tuple[int, str]] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)


class OverdueService:
    """Scan and flag overdue obligations."""

    def __init__(self, db: Session):
        """Initialize with database session."""
        self.db = db

    def sweep_overdue(self, now: date | datetime | None = None) -> SweepResult:
        """Mark pending/partial obligations past their due date as overdue.

        Args:
            now: Evaluation date (default: today)

        Returns:
            SweepResult with the number flagged, per-row errors and skips
        """
        today = as_date(now) if now is not None else date.today()
        candidate_ids = list(
            self.db.scalars(
                select(Obligation.id)
                .where(
                    Obligation.status.in_(SWEEPABLE_STATUSES),
                    Obligation.due_date < today,
                )
                .order_by(Obligation.due_date, Obligation.id)
            )
        )
        logger.info("Overdue sweep for %s: %d candidates", today.isoformat(), len(candidate_ids))

        result = SweepResult()
        for obligation_id in candidate_ids:
            try:
                changed = self._sweep_one(obligation_id, today)
            except ValidationError as e:
                self.db.rollback()
                logger.error("Obligation %s failed invariant check: %s", obligation_id, e.message)
                result.errors.append((obligation_id, e.message))
                continue
            except StaleDataError:
                self.db.rollback()
                logger.info("Obligation %s changed during sweep, skipped", obligation_id)
                result.skipped.append(obligation_id)
                continue
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error("Error sweeping obligation %s: %s", obligation_id, e, exc_info=True)
                result.errors.append((obligation_id, str(e)))
                continue
            if changed:
                result.count += 1

        logger.info(
            "Overdue sweep done: flagged=%d errors=%d skipped=%d",
            result.count,
            len(result.errors),
            len(result.skipped),
        )
        return result

    def _sweep_one(self, obligation_id: int, today: date) -> bool:
        obligation = self.db.get(Obligation, obligation_id, populate_existing=True)
        if obligation is None or obligation.status not in SWEEPABLE_STATUSES:
            return False
        check_invariants(obligation, today)
        previous_status = obligation.status
        if not refresh_status(obligation, today):
            return False
        self.db.commit()
        logger.info(
            "Obligation %s status %s -> %s",
            obligation_id,
            previous_status.value,
            obligation.status.value,
        )
        return obligation.status == ObligationStatus.OVERDUE


__all__ = ["OverdueService", "SweepResult"]
