"""
@file: base.py
@description:
Shared plumbing for the storage components: translation of SQLAlchemy
failures into the ChunkVault error taxonomy.

@notes:
- A database error that means the I/O bound was hit (SQLite busy timeout,
  PostgreSQL statement timeout, pool checkout timeout) becomes StoreTimeoutError.
- Any other database error becomes WriteError for writes and StorageError for reads.
- ChunkVault errors raised inside the block pass through untouched.
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from chunkvault.core.exceptions import StorageError, StoreTimeoutError, WriteError
from chunkvault.core.logger import setup_logger

logger = setup_logger("chunkvault.storage")

_TIMEOUT_MARKERS = (
    "database is locked",
    "database table is locked",
    "statement timeout",
    "canceling statement",
    "timed out",
    "timeout expired",
)


def is_timeout(error: SQLAlchemyError) -> bool:
    """Return whether a database error means the I/O bound was exceeded."""
    if isinstance(error, PoolTimeoutError):
        return True
    if isinstance(error, OperationalError):
        message = str(error.orig if error.orig is not None else error).lower()
        return any(marker in message for marker in _TIMEOUT_MARKERS)
    return False


@contextmanager
def db_errors(operation: str, write: bool = False) -> Iterator[None]:
    """
    Translate SQLAlchemy exceptions raised inside the block.

    Args:
        operation: Human-readable description used in the error message.
        write: Whether the block mutates the store.
    """
    try:
        yield
    except SQLAlchemyError as e:
        if is_timeout(e):
            logger.error(f"Timed out during {operation}: {str(e)}")
            raise StoreTimeoutError(f"Timed out during {operation}") from e
        logger.error(f"Database error during {operation}: {str(e)}")
        if write:
            raise WriteError(f"Failed to {operation}: {str(e)}") from e
        raise StorageError(f"Failed to {operation}: {str(e)}") from e
