"""Main application entry point."""

import argparse
import logging

import uvicorn
from dotenv import load_dotenv

from src.api.app import app
from src.services import init_db
from src.services.config import get_config
from src.services.logging import setup_server_logging

# Load environment variables
load_dotenv()

# Configure logging (with file logging)
setup_server_logging()
logger = logging.getLogger(__name__)


def main():
    """Main entry point."""
    config = get_config()

    parser = argparse.ArgumentParser(description="Rental ledger API server")
    parser.add_argument("--host", default=config.api_host, help="Host to bind to")
    parser.add_argument("--port", type=int, default=config.api_port, help="Port to bind to")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before starting (dev only; use alembic otherwise)",
    )
    args = parser.parse_args()

    if args.create_tables:
        logger.info("Creating ledger tables")
        init_db()

    logger.info(f"Starting Uvicorn server on {args.host}:{args.port}...")
    uvicorn.run(app, host=args.host, port=args.port, log_level="info")


if __name__ == "__main__":
    main()
