"""CLI entry point for the overdue sweep.

Flags every pending or partially paid obligation whose due date has passed.
Meant to be run daily from cron.

Usage:
    python -m src.cli.sweep
    python -m src.cli.sweep --date 2024-03-31

Exit Codes:
    0 - Success: every candidate was processed
    1 - Failure: sweep could not run, or some rows failed their checks

Logging:
    INFO level logs to both stdout and the configured log file
"""

import argparse
import logging
import sys
from datetime import date

from src.services.logging import setup_server_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Mark overdue obligations")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Evaluate lateness as of this date (YYYY-MM-DD, default: today)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Run one overdue sweep.

    Returns:
        Exit code: 0 for success, 1 for failure
    """
    args = parse_args(argv)
    setup_server_logging()
    logger = logging.getLogger(__name__)

    from src.services import SessionLocal
    from src.services.overdue_service import OverdueService

    db = SessionLocal()
    try:
        result = OverdueService(db).sweep_overdue(args.date)
    except KeyboardInterrupt:
        logger.warning("Sweep interrupted by user")
        return 1
    except Exception as e:
        logger.error(f"Sweep failed: {e}", exc_info=True)
        return 1
    finally:
        db.close()

    for obligation_id, message in result.errors:
        logger.error(f"Obligation {obligation_id}: {message}")
    logger.info(
        f"Sweep complete: {result.count} marked overdue, "
        f"{len(result.skipped)} skipped, {len(result.errors)} errors"
    )
    return 1 if result.errors else 0


if __name__ == "__main__":
    sys.exit(main())
