"""Database connection and configuration management."""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from docstor.config import get_settings
from docstor.models import Base


class Database:
    """Database connection manager with connection pooling and transaction handling.

    Instances are created once by the process entry point and passed explicitly
    to whatever needs a session; there is no module-level engine.
    """

    def __init__(
        self,
        database_url: str | None = None,
        pool_size: int | None = None,
        max_overflow: int | None = None,
        statement_timeout_ms: int | None = None,
    ):
        """
        Initialize database connection.

        Args:
            database_url: Database connection URL. If None, reads from settings.
                         Supports PostgreSQL and SQLite.
            pool_size: Number of connections to maintain in the pool. If None, uses settings.
            max_overflow: Maximum number of connections to allow beyond pool_size. If None, uses settings.
            statement_timeout_ms: PostgreSQL statement timeout; 0 disables. If None, uses settings.
        """
        settings = get_settings()

        if database_url is None:
            database_url = settings.database_url

        if pool_size is None:
            pool_size = settings.db_pool_size

        if max_overflow is None:
            max_overflow = settings.db_max_overflow

        if statement_timeout_ms is None:
            statement_timeout_ms = settings.db_statement_timeout_ms

        self.database_url = database_url
        self.is_sqlite = database_url.startswith("sqlite")
        self.is_postgresql = database_url.startswith("postgresql")

        connect_args = {}
        if self.is_sqlite:
            connect_args = {"check_same_thread": False}

        pool_args = {
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "pool_timeout": settings.db_pool_timeout,
        }
        if ":memory:" in database_url:
            # In-memory SQLite uses a singleton pool that takes no sizing arguments
            pool_args = {}

        self.engine = create_engine(
            database_url,
            pool_pre_ping=True,  # Verify connections before using
            connect_args=connect_args,
            echo=settings.sql_echo,
            **pool_args,
        )

        if self.is_sqlite:
            # Enable foreign keys (and therefore ON DELETE CASCADE) for SQLite
            @event.listens_for(self.engine, "connect")
            def set_sqlite_pragma(dbapi_conn, connection_record):
                cursor = dbapi_conn.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        if self.is_postgresql and statement_timeout_ms:
            # Caller-supplied deadline: a statement running past it raises and the
            # surrounding transaction is rolled back by session()
            @event.listens_for(self.engine, "connect")
            def set_statement_timeout(dbapi_conn, connection_record):
                cursor = dbapi_conn.cursor()
                cursor.execute(f"SET statement_timeout = {int(statement_timeout_ms)}")
                cursor.close()

        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(bind=self.engine)

    def drop_tables(self) -> None:
        """Drop all database tables."""
        Base.metadata.drop_all(bind=self.engine)

    def dispose(self) -> None:
        """Close every pooled connection."""
        self.engine.dispose()

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Context manager for database sessions with automatic transaction handling.

        Any exception raised inside the block, including a cancellation or a
        statement timeout, rolls the open transaction back before propagating.

        Usage:
            with db.session() as session:
                service = DocumentService(session)
                ...
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()
