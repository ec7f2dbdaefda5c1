"""
Database session management for the Product Requirements MCP Server.

This module provides connection management and session handling for SQLAlchemy.
For the MCP server, session management matters because:

1. Transaction Management: deletions and prompt activation must be atomic
2. Connection Pooling: a single SQLite connection avoids lock contention
3. Error Recovery: store failures become domain errors, never raw exceptions

Sessions are short-lived (one per MCP request or tool call) and always used
through context managers.
"""

import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import TypeVar

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_config
from ..errors import DomainError, InternalError, TransactionFailedError
from .schema import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DatabaseManager:
    """
    Manages database connections and sessions for the MCP server.

    This class provides:
    - Lazily created engine with SQLite foreign keys enabled
    - Session factory with explicit transactions
    - ``within_transaction`` for atomic multi-statement operations
    """

    def __init__(self, database_url: str | None = None):
        """
        Initialize the database manager.

        Args:
            database_url: SQLAlchemy database URL. If None, taken from configuration.
        """
        if database_url is None:
            database_url = get_config().get_database_url()
            logger.info("Using database at: %s", database_url)

        self.database_url = database_url
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def engine(self) -> Engine:
        """
        Get or create the database engine.

        SQLite engines use a StaticPool and turn on foreign key enforcement,
        which the cascade and ``SET NULL`` rules depend on.
        """
        if self._engine is None:
            if self.database_url.startswith("sqlite"):
                self._engine = create_engine(
                    self.database_url,
                    poolclass=StaticPool,
                    connect_args={"check_same_thread": False},
                    echo=False,
                )

                @event.listens_for(self._engine, "connect")
                def set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
                    cursor = dbapi_connection.cursor()
                    cursor.execute("PRAGMA foreign_keys=ON")
                    cursor.close()
            else:
                self._engine = create_engine(
                    self.database_url,
                    pool_size=10,
                    max_overflow=20,
                    pool_pre_ping=True,
                    echo=False,
                )

            logger.info("Database engine created: %s", self._engine.url)

        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        """Get or create the session factory."""
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                autocommit=False,
                autoflush=False,
                expire_on_commit=False,  # Keep objects usable after commit
            )
        return self._session_factory

    def create_session(self) -> Session:
        """Create a new database session. Callers are responsible for closing it."""
        return self.session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope for database operations.

        ```python
        with db_manager.session_scope() as session:
            epic = EpicRepository(session).resolve("EP-001")
        # Session is automatically committed or rolled back
        ```

        Yields:
            Database session

        Raises:
            Any error raised inside the block, after rolling back
        """
        session = self.create_session()
        try:
            yield session
            session.commit()
            logger.debug("Database transaction committed successfully")
        except DomainError:
            session.rollback()
            raise
        except Exception:
            logger.exception("Database error, rolling back")
            session.rollback()
            raise
        finally:
            session.close()

    def within_transaction(self, fn: Callable[[Session], T]) -> T:
        """
        Run ``fn`` inside a single transaction.

        Everything ``fn`` does is committed together or not at all. Domain
        errors raised by ``fn`` propagate unchanged after the rollback; store
        failures become ``TransactionFailedError``.
        """
        session = self.create_session()
        try:
            result = fn(session)
            session.commit()
            return result
        except DomainError:
            session.rollback()
            raise
        except IntegrityError as e:
            session.rollback()
            logger.warning("Transaction rolled back on integrity error: %s", e.orig)
            raise TransactionFailedError(
                "Transaction failed: conflicting concurrent change", cause="conflict"
            ) from e
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("Transaction rolled back")
            raise TransactionFailedError("Transaction failed", cause="internal") from e
        finally:
            session.close()

    def init_database(self, drop_existing: bool = False) -> None:
        """
        Initialize the database schema.

        Args:
            drop_existing: If True, drop all tables before creating
        """
        engine = self.engine

        if drop_existing:
            logger.warning("Dropping all existing tables...")
            Base.metadata.drop_all(bind=engine)

        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialization complete")

    def verify_connection(self) -> bool:
        """
        Verify the database connection is working.

        Used by the ``/health`` endpoint.
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.exception("Database connection failed")
            return False

    def close(self) -> None:
        """Dispose of the engine. Called when the server shuts down."""
        if self._engine:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._session_factory = None


_db_manager: DatabaseManager | None = None


def get_db_manager(database_url: str | None = None) -> DatabaseManager:
    """
    Get the global database manager instance.

    Args:
        database_url: Database URL (only used on first call)
    """
    global _db_manager  # noqa: PLW0603 - Singleton pattern for database manager

    if _db_manager is None:
        _db_manager = DatabaseManager(database_url)

    return _db_manager


def reset_db_manager() -> None:
    """Dispose of and forget the global manager (useful for testing)."""
    global _db_manager  # noqa: PLW0603

    if _db_manager is not None:
        _db_manager.close()
    _db_manager = None


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Convenience context manager around the global manager's session scope."""
    with get_db_manager().session_scope() as session:
        yield session


def within_transaction(fn: Callable[[Session], T]) -> T:
    return get_db_manager().within_transaction(fn)


# MCP-specific session utilities


def mcp_safe_commit(session: Session, operation: str) -> None:
    """
    Commit a session, translating store failures into domain errors.

    Args:
        session: The database session
        operation: Description of the operation (for error messages)

    Raises:
        TransactionFailedError: If the commit fails
    """
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise TransactionFailedError(
            f"Database operation '{operation}' conflicts with existing data", cause="conflict"
        ) from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("Commit failed for %s", operation)
        raise TransactionFailedError(f"Database operation '{operation}' failed") from e


def mcp_safe_query(session: Session, query_func: Callable[[Session], T], error_msg: str) -> T:
    """
    Execute a query, translating store failures into an internal error.

    Args:
        session: The database session
        query_func: Function that performs the query
        error_msg: Error message for the MCP response

    Raises:
        InternalError: If the query fails
    """
    try:
        return query_func(session)
    except SQLAlchemyError as e:
        logger.exception("Query failed")
        raise InternalError(f"{error_msg}: Database query failed") from e
