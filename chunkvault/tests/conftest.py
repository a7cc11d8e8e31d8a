"""
@file: conftest.py
@description:
This module provides pytest fixtures and configuration for the ChunkVault test suite.

Fixtures include:
- An isolated in-memory SQLite database per test
- Blob services with a tiny chunk size for exercising chunk boundaries
- Blob services with the production 256 KiB chunk size for the HTTP API
- Test client with the services dependency overridden
- An upload helper

@notes:
- Environment variables are set before any chunkvault module is imported,
  because settings are read once at import time.
"""

import io
import os

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("TESTING", "True")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from chunkvault.db.init_db import init_db
from chunkvault.db.session import build_engine, build_session_factory
from chunkvault.main import app
from chunkvault.services.container import build_services, get_services

SMALL_CHUNK_SIZE = 4
API_CHUNK_SIZE = 256 * 1024


@pytest.fixture
def engine():
    """A fresh in-memory database with all tables created."""
    db_engine = build_engine("sqlite://", timeout=5)
    init_db(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def services(session_factory):
    """Blob services with a 4-byte chunk size."""
    return build_services(session_factory, chunk_size=SMALL_CHUNK_SIZE)


@pytest.fixture
def api_services(session_factory):
    """Blob services with the production chunk size, used behind the API."""
    return build_services(session_factory, chunk_size=API_CHUNK_SIZE)


@pytest.fixture
def test_client(api_services):
    """
    Fixture that returns a TestClient whose routes use ``api_services``.
    """
    app.dependency_overrides[get_services] = lambda: api_services
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def upload(services):
    """
    Upload ``data`` through the small-chunk pipeline and return the blob metadata.
    """
    def _upload(data: bytes, content_type: str = "application/octet-stream", name: str = "blob.bin", tags=None):
        return services.uploads.upload_stream(io.BytesIO(data), content_type, name, tags)
    return _upload
