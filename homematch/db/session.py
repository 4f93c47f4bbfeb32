"""
HomeMatch Database Session Management

SQLAlchemy engine and session configuration with connection pooling.

Objects:
    - engine: Pooled engine for the property database
    - SessionLocal: Session factory injected into the search components

Dependencies:
    - get_db(): Yields a session and closes it afterwards (scripts, workers)
"""

from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from homematch.config import settings

engine = create_engine(
    settings.DATABASE_URL,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_recycle=settings.DB_POOL_RECYCLE,
    pool_pre_ping=True,
    echo=False,
)

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


def get_db() -> Generator[Session, None, None]:
    """
    Provide a read-write database session.

    Usage:
        db_gen = get_db()
        db = next(db_gen)
        ...

    The session is closed when the generator is exhausted or closed.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
