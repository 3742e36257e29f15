"""Database engine and helpers.

This module configures the SQLModel/SQLAlchemy engine from
`settings.DATABASE_URL` (a local SQLite file by default) and provides
small helpers used by the application and tests.
"""

import logging

from sqlmodel import SQLModel, create_engine, Session

from .config import settings

logger = logging.getLogger("quizcraft.db")


def _connect_args() -> dict:
    if settings.is_sqlite:
        # `timeout` bounds how long a connection waits on a locked database.
        return {"check_same_thread": False, "timeout": settings.DB_TIMEOUT_SECONDS}
    return {}


engine = create_engine(settings.DATABASE_URL, echo=False, connect_args=_connect_args())


def create_db_and_tables():
    """Create database tables using SQLModel metadata.

    Schema migrations are out of scope; this only creates missing tables.
    """
    from . import models  # noqa: F401  (registers the table classes)
    logger.debug("Creating tables on %s", engine.url)
    SQLModel.metadata.create_all(engine)


def get_session():
    """Yield a database `Session` for FastAPI dependency injection.

    The generator yields a session and ensures it is closed when the
    request scope finishes.
    """
    with Session(engine) as session:
        yield session
