"""
Main application entry point for the ChunkVault Backend API.

This module initializes the FastAPI application with middleware and routers,
and creates the database tables at startup.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from chunkvault import __version__
from chunkvault.api import assets, blobs, health
from chunkvault.core.logger import logger
from chunkvault.core.middleware import setup_all_middleware
from chunkvault.db.init_db import init_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the chunk, blob and catalog tables if they do not exist."""
    init_db()
    logger.info("ChunkVault API started")
    yield


# Initialize FastAPI app with metadata
app = FastAPI(
    lifespan=lifespan,
    title="ChunkVault API",
    description="Chunked blob storage for audio tracks and cover images",
    version=__version__,
)

setup_all_middleware(app)

app.include_router(assets.router)
app.include_router(blobs.router)
app.include_router(health.router)


# Root endpoint for basic health check
@app.get("/")
async def root():
    """
    Root endpoint providing a simple health check and API information.

    Returns:
        dict: Basic API information including status and version.
    """
    return {
        "status": "online",
        "api": "ChunkVault Backend API",
        "version": __version__,
    }


if __name__ == "__main__":
    # Run the API with uvicorn when script is executed directly
    uvicorn.run("chunkvault.main:app", host="0.0.0.0", port=8000, reload=True)
