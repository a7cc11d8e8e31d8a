"""
Database initialization script.

This script creates the chunk, blob and catalog tables.
Run this script when setting up the application for the first time; the API
also calls init_db() at startup.
"""

from typing import Optional

from sqlalchemy.engine import Engine

# Models must be imported so their tables are registered on Base.metadata
from chunkvault.db import models  # noqa: F401
from chunkvault.db.base import Base
from chunkvault.db.session import engine as default_engine
from chunkvault.core.logger import setup_logger

logger = setup_logger("chunkvault.db.init_db")


def init_db(bind: Optional[Engine] = None) -> None:
    """Initialize the database by creating all tables."""
    target = bind if bind is not None else default_engine
    Base.metadata.create_all(bind=target)
    logger.info(f"Database initialized at {target.url!r}")


if __name__ == "__main__":
    init_db()
