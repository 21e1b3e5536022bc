"""Database connection and session management."""

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.services.config import get_config


def build_engine(database_url: str) -> Engine:
    """Create an engine for the given URL.

    An in-memory SQLite database uses StaticPool so every session of the
    process sees the same database; other backends get pre-ping pooling.
    """
    if database_url.startswith("sqlite"):
        if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
            return create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url, pool_pre_ping=True)


engine = build_engine(get_config().database_url)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create all ledger tables (dev/test; production uses Alembic)."""
    from src.models import Base

    Base.metadata.create_all(bind=engine)


__all__ = [
    "build_engine",
    "engine",
    "SessionLocal",
    "get_db",
    "init_db",
]
