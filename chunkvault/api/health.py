"""
@file: health.py
@description:
Provides a simple health check endpoint to verify that the server
is running and that the database answers.

@dependencies:
- FastAPI APIRouter for route definitions.
- chunkvault.db.session: For the database session dependency
- chunkvault.core.logger: For component-specific logging
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chunkvault.core.logger import setup_logger
from chunkvault.db.session import get_db

# Create a component-specific logger
logger = setup_logger("chunkvault.api.health")

# Create a new router instance for health checks
router = APIRouter()


@router.get("/health", tags=["Health"])
def health_check(db: Session = Depends(get_db)):
    """
    Health Check Endpoint

    Returns a simple JSON object indicating that the service is online and
    whether the database responded to a trivial query.

    Returns:
        dict: A dictionary containing status, message and database state.
    """
    logger.debug("Health check requested")
    try:
        db.execute(text("SELECT 1"))
        database = "OK"
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {str(e)}")
        database = "UNAVAILABLE"
    return {
        "status": "OK" if database == "OK" else "DEGRADED",
        "message": "Health check successful",
        "database": database,
    }
