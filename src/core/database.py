"""Database connection and session management.

This module handles the database connection using SQLAlchemy.
"""

import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from config import DATA_DIR, DATABASE_URL, SQLITE_BUSY_TIMEOUT
from core.exceptions import InfrastructureError
from models.base import Base
# Import models to ensure they are registered with Base.metadata
import models  # noqa: F401

logger = logging.getLogger(__name__)


def build_engine(url: str = DATABASE_URL):
    """Create an engine; SQLite connections get a busy timeout so writers queue."""
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT}
    return create_engine(url, connect_args=connect_args, pool_pre_ping=True)


if DATABASE_URL.startswith("sqlite:///"):
    # Ensure data directory exists
    DATA_DIR.mkdir(parents=True, exist_ok=True)

engine = build_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None) -> None:
    Base.metadata.create_all(bind=bind or engine)


def get_db():
    """Dependency for getting a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session, action: str):
    """Commit on success; roll back and re-raise on any failure.

    Storage failures surface as InfrastructureError so callers know the
    operation may be retried after re-reading state.
    """
    try:
        yield
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Storage failure while %s", action, exc_info=True)
        raise InfrastructureError(
            f"Storage unavailable while {action}; re-query state before retrying"
        ) from exc
    except Exception:
        db.rollback()
        raise
