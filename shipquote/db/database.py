"""Database connection management."""

import os
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker


def get_database_url() -> str:
    """Get database URL from environment or use default SQLite."""
    return os.getenv("DATABASE_URL", "sqlite:///./shipquote.db")


def create_db_engine(database_url: str | None = None):
    """Create database engine with appropriate settings."""
    url = database_url or get_database_url()
    echo = os.getenv("SQL_ECHO", "").lower() == "true"

    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False}, echo=echo)

    return create_engine(url, pool_size=5, max_overflow=10, pool_pre_ping=True, echo=echo)


engine = create_db_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Context manager for database sessions outside of FastAPI."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
