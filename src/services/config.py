"""Ledger configuration from environment variables and .env file."""

import logging
from typing import Optional

from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class LedgerConfig(BaseSettings):
    """Ledger configuration loaded from environment variables.

    Pydantic automatically loads values from:
    1. OS environment variables (at instantiation time)
    2. .env file in the working directory

    Environment variable names are the upper-cased field names
    (DATABASE_URL, LOG_FILE, PAYMENT_RETRY_ATTEMPTS, API_HOST, API_PORT).
    """

    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Allow extra fields in .env file
    )

    database_url: str = "sqlite:///./ledger.db"
    log_file: str = "logs/ledger.log"

    # Bounded automatic retries for lost updates while recording a payment
    payment_retry_attempts: int = 3

    api_host: str = "0.0.0.0"
    api_port: int = 8000

    @field_validator("payment_retry_attempts")
    @classmethod
    def _at_least_one_attempt(cls, value: int) -> int:
        if value < 1:
            raise ValueError("PAYMENT_RETRY_ATTEMPTS must be at least 1")
        return value


# Lazy loader to ensure environment is loaded before instantiation
_config_instance: Optional[LedgerConfig] = None


def get_config() -> LedgerConfig:
    """Get or create the ledger config instance."""
    global _config_instance
    if _config_instance is None:
        _config_instance = LedgerConfig()
        logger.debug("Ledger config loaded: database_url=%s", _config_instance.database_url)
    return _config_instance


def reset_config() -> None:
    """Drop the cached config so the next get_config() re-reads the environment."""
    global _config_instance
    _config_instance = None


__all__ = ["LedgerConfig", "get_config", "reset_config"]
