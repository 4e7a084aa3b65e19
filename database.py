"""
Database management layer.

One engine per process. Workflows run in background threads with their own
sessions, so SQLite connections are opened thread-shareable with WAL
journaling and a busy timeout; PostgreSQL gets a pre-pinged QueuePool.
"""

from contextlib import contextmanager
from typing import Generator
from sqlalchemy import create_engine, event, text, Engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool
from config import get_settings
import logging

logger = logging.getLogger(__name__)

SQLITE_BUSY_TIMEOUT_MS = 5000


class DatabaseManager:
    """Owns the engine and session factory for the pipeline database."""

    def __init__(self, database_url: str | None = None):
        self.settings = get_settings()
        self.database_url = database_url or str(self.settings.database_url)
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)
        return self._session_factory

    def _create_engine(self) -> Engine:
        logger.info(f"Creating database engine for: {self._mask_password(self.database_url)}")
        echo = self.settings.log_level == "DEBUG"

        if self.is_sqlite:
            engine = create_engine(
                self.database_url,
                connect_args={"check_same_thread": False},
                echo=echo,
            )
            event.listen(engine, "connect", _configure_sqlite_connection)
        else:
            engine = create_engine(
                self.database_url,
                poolclass=QueuePool,
                pool_size=self.settings.db_pool_size,
                max_overflow=self.settings.db_max_overflow,
                pool_timeout=self.settings.db_pool_timeout,
                pool_pre_ping=True,
                echo=echo,
            )
        return engine

    def create_tables(self) -> None:
        """Create the outline, lesson and status ledger tables if missing."""
        from shared.models.entities import Base

        Base.metadata.create_all(self.engine)
        logger.info("Database tables ensured")

    def get_session(self) -> Session:
        return self.session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Session committed on success, rolled back and re-raised on error.

        Used by startup recovery; request handlers and workflows manage their
        own sessions.
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database transaction failed: {e}")
            raise
        finally:
            session.close()

    def health_check(self) -> bool:
        """True if a trivial query succeeds."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    def close(self):
        if self._engine:
            self._engine.dispose()
            logger.info("Database engine closed")

    @staticmethod
    def _mask_password(url: str) -> str:
        return make_url(url).render_as_string(hide_password=True)


def _configure_sqlite_connection(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
    finally:
        cursor.close()


_db_manager: DatabaseManager | None = None


def get_db_manager() -> DatabaseManager:
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a request-scoped session."""
    session = get_db_manager().get_session()
    try:
        yield session
    finally:
        session.close()


def reset_db_manager():
    """Dispose the global manager so the next call rebuilds it from settings."""
    global _db_manager
    if _db_manager:
        _db_manager.close()
    _db_manager = None
