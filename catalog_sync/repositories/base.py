"""
Base repository pattern implementation and session management.

Provides common database operations with error handling, plus the engine and
session factory used by the sync engine and the CLI.
"""
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Callable, Generic, Optional, TypeVar

import structlog
from pydantic import BaseModel
from sqlalchemy import create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from catalog_sync.models.database import Base

logger = structlog.get_logger(__name__)

# Type variables for generic repository
ModelType = TypeVar("ModelType", bound=BaseModel)
TableType = TypeVar("TableType")


class RepositoryError(Exception):
    """Base exception for repository operations"""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class BaseRepository(Generic[ModelType], ABC):
    """
    Abstract base repository providing common database operations.

    Concrete repositories translate between table rows and immutable domain
    values; rows never leave the repository.
    """

    def __init__(
        self,
        session: Session,
        table_class: type,
        model_class: type[ModelType],
    ) -> None:
        self.session = session
        self.table_class = table_class
        self.model_class = model_class
        self.logger = logger.bind(
            repository=self.__class__.__name__, table=table_class.__name__
        )

    def get_by_id(self, entity_id: int) -> Optional[ModelType]:
        """
        Get entity by ID.

        Args:
            entity_id: Primary key to search for

        Returns:
            Domain model if found, None otherwise

        Raises:
            RepositoryError: If database operation fails
        """
        try:
            db_entity = self.session.get(self.table_class, entity_id)
            if db_entity is None:
                return None
            return self._to_domain_model(db_entity)

        except SQLAlchemyError as e:
            self.logger.error(
                "Failed to get entity by ID", entity_id=entity_id, error=str(e)
            )
            raise RepositoryError(f"Failed to get entity by ID: {e}", e) from e

    def list_all(
        self,
        limit: Optional[int] = None,
        offset: int = 0,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[ModelType]:
        """
        List entities in insertion order with optional pagination and filters.

        Args:
            limit: Maximum number of entities to return, all when None
            offset: Number of entities to skip
            filters: Optional equality filters to apply

        Returns:
            List of domain models

        Raises:
            RepositoryError: If database operation fails
        """
        try:
            query = select(self.table_class)

            if filters:
                query = self._apply_filters(query, filters)

            query = query.order_by(self.table_class.id).offset(offset)
            if limit is not None:
                query = query.limit(limit)

            db_entities = self.session.execute(query).scalars().all()
            return [self._to_domain_model(entity) for entity in db_entities]

        except SQLAlchemyError as e:
            self.logger.error(
                "Failed to list entities",
                limit=limit,
                offset=offset,
                filters=filters,
                error=str(e),
            )
            raise RepositoryError(f"Failed to list entities: {e}", e) from e

    def delete(self, entity_id: int) -> bool:
        """
        Delete entity by ID, cascading to owned rows.

        Returns:
            True if entity was deleted, False if not found

        Raises:
            RepositoryError: If deletion fails
        """
        try:
            db_entity = self.session.get(self.table_class, entity_id)
            if db_entity is None:
                return False

            self.session.delete(db_entity)
            self.session.flush()
            return True

        except SQLAlchemyError as e:
            self.logger.error(
                "Failed to delete entity", entity_id=entity_id, error=str(e)
            )
            raise RepositoryError(f"Failed to delete entity: {e}", e) from e

    def count(self, filters: Optional[dict[str, Any]] = None) -> int:
        """
        Count entities with optional filters.

        Raises:
            RepositoryError: If count operation fails
        """
        try:
            query = select(func.count(self.table_class.id))

            if filters:
                query = self._apply_filters(query, filters)

            return self.session.execute(query).scalar() or 0

        except SQLAlchemyError as e:
            self.logger.error("Failed to count entities", filters=filters, error=str(e))
            raise RepositoryError(f"Failed to count entities: {e}", e) from e

    def _apply_filters(self, query: Any, filters: dict[str, Any]) -> Any:
        """
        Apply equality filters to query. Override in subclasses for custom filtering.
        """
        for field, value in filters.items():
            if hasattr(self.table_class, field):
                query = query.where(getattr(self.table_class, field) == value)

        return query

    def _flush(self, action: str, **context: Any) -> None:
        """Flush pending changes, wrapping driver errors"""
        try:
            self.session.flush()
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to {action}", error=str(e), **context)
            raise RepositoryError(f"Failed to {action}: {e}", e) from e

    @abstractmethod
    def _to_domain_model(self, db_entity: Any) -> ModelType:
        """
        Convert database entity to domain model.
        Must be implemented by concrete repositories.
        """


# ============================================================================
# Engine and session management
# ============================================================================


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """
    Let SQLAlchemy own transaction boundaries on pysqlite.

    The driver otherwise issues its own BEGIN/COMMIT, which breaks SAVEPOINT.
    """

    @event.listens_for(engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_database_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 3600,
) -> Engine:
    """
    Create an engine for PostgreSQL or SQLite.

    In-memory SQLite URLs share a single connection so every session sees the
    same database.
    """
    if database_url.startswith("sqlite"):
        kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **kwargs)
        _enable_sqlite_savepoints(engine)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            pool_pre_ping=True,
        )

    logger.debug("Database engine created", backend=engine.dialect.name)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Build the session factory used by repositories and the ledger"""
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_database(engine: Engine) -> None:
    """Create all catalog tables that do not exist yet"""
    Base.metadata.create_all(engine)
    logger.info("Database schema initialized", tables=len(Base.metadata.tables))


class DatabaseSession:
    """Database session management with proper error handling"""

    def __init__(self, session: Session) -> None:
        self.session = session
        self.logger = logger.bind(component="database_session")

    def __enter__(self) -> Session:
        return self.session

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Commit on success, roll back on exception, always close"""
        try:
            if exc_type is not None:
                self.session.rollback()
                self.logger.error(
                    "Transaction rolled back due to exception",
                    exception_type=exc_type.__name__,
                    exception_message=str(exc_val) if exc_val else None,
                )
            else:
                try:
                    self.session.commit()
                    self.logger.debug("Transaction committed successfully")
                except SQLAlchemyError as e:
                    self.session.rollback()
                    self.logger.error("Failed to commit transaction", error=str(e))
                    raise
        finally:
            self.session.close()


@contextmanager
def session_scope(session_factory: Callable[[], Session]) -> Iterator[Session]:
    """Open a session from the factory and manage its transaction"""
    with DatabaseSession(session_factory()) as session:
        yield session


__all__ = [
    "RepositoryError",
    "BaseRepository",
    "DatabaseSession",
    "create_database_engine",
    "create_session_factory",
    "init_database",
    "session_scope",
]
