"""
Database configuration, session management and the transaction helper.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from app.config import settings

logger = logging.getLogger("mealpass.database")

# Create SQLAlchemy Base
Base = declarative_base()

# Create engine
engine = create_engine(
    settings.database_url, echo=settings.db_echo, future=True, pool_pre_ping=True
)

# Create session factory
SessionLocal = sessionmaker(bind=engine, future=True, expire_on_commit=False)

_DEPTH_KEY = "atomic_depth"


def init_database():
    """Initialize database schema"""
    with engine.begin() as conn:
        Base.metadata.create_all(bind=conn)
        logger.info("Database tables created successfully")


def get_db_session():
    """Get database session (for FastAPI dependency injection)"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def abort(db: Session) -> None:
    """
    Roll back whatever the session has pending.

    Safe to call with nothing written and safe to call twice; a failure of
    the rollback itself is logged and the session is left for close().
    """
    try:
        db.rollback()
    except Exception:
        logger.exception("Rollback failed; session will be discarded")


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    Run a block as one all-or-nothing unit.

    The outermost block commits on success and aborts on any exception.
    Nested blocks run inside a SAVEPOINT, so a failure rolls back only the
    nested work and the exception propagates to the caller.

    Usage:
        with atomic(db):
            day_repo.transition(...)
            sub_repo.debit_meals(...)
    """
    depth = db.info.get(_DEPTH_KEY, 0)
    db.info[_DEPTH_KEY] = depth + 1
    try:
        if depth:
            with db.begin_nested():
                yield db
        else:
            try:
                yield db
                db.commit()
            except Exception:
                abort(db)
                raise
    finally:
        db.info[_DEPTH_KEY] = depth


def in_atomic(db: Session) -> bool:
    return db.info.get(_DEPTH_KEY, 0) > 0
