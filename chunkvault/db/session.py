"""
Database Session Management Module.

This module handles the creation and management of database connections and sessions
using SQLAlchemy. It provides utilities for building an engine whose calls are
bounded by the configured I/O timeout, creating sessions, and scoping them to a
single unit of work.

Key features:
- Engine configuration for SQLite (default) and PostgreSQL
- Session maker setup
- A transactional session scope used by the storage components
- FastAPI dependency for session injection

Usage:
- Storage components take a session factory and open one short-lived session
  per operation via session_scope(), so concurrent requests never share a session
"""

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from chunkvault.core.config import settings


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _is_sqlite_memory(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def build_engine(database_url: str, timeout: Optional[float] = None, echo: bool = False) -> Engine:
    """
    Build a SQLAlchemy engine whose calls are bounded by ``timeout`` seconds.

    SQLite waits at most ``timeout`` for a lock (busy timeout); PostgreSQL gets a
    server-side ``statement_timeout``. In both cases the pool gives up waiting for
    a free connection after ``timeout``.

    Args:
        database_url: SQLAlchemy database URL.
        timeout: I/O bound in seconds; defaults to settings.IO_TIMEOUT_SECONDS.
        echo: Log SQL statements.

    Returns:
        Engine: The configured engine.
    """
    if timeout is None:
        timeout = settings.IO_TIMEOUT_SECONDS

    if _is_sqlite(database_url):
        connect_args = {"check_same_thread": False, "timeout": timeout}
        if _is_sqlite_memory(database_url):
            # One shared connection, otherwise every thread sees its own empty database
            return create_engine(
                database_url,
                connect_args=connect_args,
                poolclass=StaticPool,
                echo=echo,
            )
        engine = create_engine(
            database_url,
            connect_args=connect_args,
            pool_timeout=timeout,
            echo=echo,
        )

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            # WAL lets readers stream chunks while a writer or deleter is active
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        return engine

    return create_engine(
        database_url,
        pool_pre_ping=True,  # Check connection before using it
        pool_size=10,
        max_overflow=20,
        pool_recycle=300,    # Recycle connections every 5 minutes
        pool_timeout=timeout,
        connect_args={"options": f"-c statement_timeout={int(timeout * 1000)}"},
        echo=echo,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    """Create a sessionmaker bound to ``engine``."""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


engine = build_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)

# Create a sessionmaker for creating database sessions
SessionLocal = build_session_factory(engine)


@contextmanager
def session_scope(session_factory: sessionmaker) -> Iterator[Session]:
    """
    Provide a transactional scope around a series of operations.

    Commits when the block exits normally, rolls back when it raises, and
    always closes the session.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise
    finally:
        session.close()


def get_db():
    """
    FastAPI dependency that provides a database session.

    This function creates a new SQLAlchemy session and ensures it is properly
    closed after use, even if exceptions occur during the request handling.

    Yields:
        Session: A SQLAlchemy database session.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
