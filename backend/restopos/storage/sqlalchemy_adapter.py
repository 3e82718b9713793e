"""
SQLAlchemy storage handle for the restaurant POS.

Owns the engine and session factory. Created once at process start and
injected into request handlers through ``app.state.storage``.
"""

import logging
import os
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from restopos.db import Base, init_db
from restopos.errors import OrderError, PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///restaurant.db"


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class SQLAlchemyStorage:
    """SQLAlchemy-backed store: engine, sessionmaker and unit-of-work scopes."""

    def __init__(self, database_url: str = DEFAULT_DATABASE_URL, use_alembic: bool = None):
        """
        Initialize storage and make sure the schema exists.

        Args:
            database_url: SQLAlchemy database URL
            use_alembic: Run Alembic migrations instead of create_all.
                         Defaults to the USE_ALEMBIC env var.
        """
        self.database_url = database_url
        is_sqlite = database_url.startswith("sqlite")

        # pool_pre_ping: verify connections before use (detect stale connections)
        self.engine = create_engine(
            self.database_url,
            connect_args={"check_same_thread": False, "timeout": 15} if is_sqlite else {},
            echo=False,
            future=True,
            pool_pre_ping=True,
        )
        if is_sqlite:
            # FK actions (SET NULL / CASCADE) are off by default in SQLite
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        if use_alembic is None:
            use_alembic = os.getenv("USE_ALEMBIC", "false").lower() == "true"
        init_db(self.engine, use_alembic=use_alembic, base=Base)
        logger.info("Database initialized at %s", self.database_url)

    def _get_session(self) -> Session:
        """Get a new database session (caller must close)."""
        return self.SessionLocal()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        One unit of work: commit on success, roll back on any failure.

        Business errors (``OrderError``) propagate unchanged after rollback;
        store failures are re-raised as ``PersistenceError``.
        """
        session = self._get_session()
        try:
            yield session
            session.commit()
        except OrderError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            raise PersistenceError(f"Database error: {exc}") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:
        """Dispose of the connection pool."""
        self.engine.dispose()
