"""
Database engine, session management, and base model.

Every model inherits from Base. Every request gets a session
from get_db(); the reminder scheduler opens its own sessions
from SessionLocal.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from pocket_ledger.config import get_settings

settings = get_settings()

# SQLite connections may be handed between the request thread
# and the scheduler's worker thread.
connect_args = (
    {"check_same_thread": False}
    if settings.DATABASE_URL.startswith("sqlite")
    else {}
)

# --- Engine ---
# pool_pre_ping=True tests connections before using them,
# which handles a database restart or a stale connection.
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=connect_args,
)

# --- Session Factory ---
# autocommit=False: the caller decides when a unit of work is
# committed, so a failed operation can be rolled back whole.
# autoflush=False: SQL is only sent on an explicit flush.
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass


# --- Dependency for FastAPI ---
def get_db():
    """
    Provide a database session for a single request.

    The try/finally guarantees the session is closed even
    when the endpoint raises, so no connection leaks.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
