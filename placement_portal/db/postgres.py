from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from contextlib import contextmanager
import logging

from placement_portal.core.config import get_settings
from placement_portal.core.exceptions import TransactionFailure

settings = get_settings()
logger = logging.getLogger(__name__)

# Create engine with connection pool
# pool_size=5: maintain 5 connections ready
# max_overflow=10: allow 10 extra connections under load
engine = create_engine(
    settings.postgres_url,
    pool_size=5,
    max_overflow=10,
    pool_pre_ping=True,
    echo=settings.debug  # Log SQL queries in debug mode
)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_db_session():
    """
    Context manager for one database transaction.
    Commits on success, rolls back on any error.

    Usage:
        with get_db_session() as db:
            db.execute(text("SELECT * FROM users"))

    Raises:
        TransactionFailure: wraps any SQLAlchemy error raised inside the block
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Transaction rolled back: %s", e)
        raise TransactionFailure(f"Database error: {e.__class__.__name__}") from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def for_update(db: Session) -> str:
    """Row-lock suffix for SELECTs; empty on stores without FOR UPDATE."""
    if db.get_bind().dialect.name == "postgresql":
        return " FOR UPDATE"
    return ""


def is_postgres(db: Session) -> bool:
    return db.get_bind().dialect.name == "postgresql"


def test_postgres_connection() -> bool:
    """
    Test if PostgreSQL is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        with get_db_session() as db:
            result = db.execute(text("SELECT 1 as test"))
            row = result.fetchone()
            return row[0] == 1
    except TransactionFailure as e:
        logger.warning("PostgreSQL connection failed: %s", e)
        return False


def fetch_all(db: Session, sql: str, params: dict = None) -> list:
    """Execute raw SQL and return results as list of dicts."""
    result = db.execute(text(sql), params or {})
    return [dict(row) for row in result.mappings().all()]


def fetch_one(db: Session, sql: str, params: dict = None):
    """First row as a dict, or None."""
    row = db.execute(text(sql), params or {}).mappings().first()
    return dict(row) if row is not None else None
