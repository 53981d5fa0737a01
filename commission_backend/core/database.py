import logging
from datetime import datetime, timezone
from typing import Callable, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from commission_backend.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def build_engine(database_url: str):
    connect_args = {}
    if database_url.startswith("sqlite"):
        # FastAPI serves sync routes from a threadpool
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the convention for every TIMESTAMP column in this schema."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_db():
    """
    Dependency to get a database session.
    Ensures the database session is always closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def run_unit_of_work(db: Session, work: Callable[[], T], retry_on_conflict: bool = True) -> T:
    """
    Runs `work` and commits it as a single transaction.

    Any exception rolls the whole unit back. A unique-constraint conflict
    (a concurrent duplicate trigger won the race) is retried once: the second
    pass re-reads the committed rows and its existence checks skip them.
    """
    retries_left = 1 if retry_on_conflict else 0
    while True:
        try:
            result = work()
            db.commit()
            return result
        except IntegrityError as e:
            db.rollback()
            if retries_left <= 0:
                raise
            retries_left -= 1
            logger.warning(f"Unique constraint conflict, re-running unit of work: {e.orig}")
        except Exception:
            db.rollback()
            raise


def create_db_and_tables(bind=None):
    # Models must be imported so they are registered on Base.metadata
    import commission_backend.models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)


if __name__ == "__main__":
    print("Creating database tables based on models...")
    create_db_and_tables()
    print("Database tables created (if they didn't exist).")
