"""
@file: container.py
@description:
Wires the storage components, pipelines and catalog to one session factory
and one chunk size.

The HTTP layer and the background worker both obtain their components from
ServiceFactory.get_services(); tests build their own container with
build_services() against an in-memory database.

@dependencies:
- chunkvault.db.session: default session factory
- chunkvault.core.config: chunk size and grace period
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import sessionmaker

from chunkvault.core.config import settings
from chunkvault.core.logger import setup_logger
from chunkvault.db.session import SessionLocal
from chunkvault.services.catalog import Catalog
from chunkvault.services.deletion import DeletionCoordinator
from chunkvault.services.download_pipeline import DownloadPipeline
from chunkvault.services.reconciliation import Reconciler
from chunkvault.services.upload_pipeline import UploadPipeline
from chunkvault.storage.blob_registry import BlobRegistry
from chunkvault.storage.chunk_store import ChunkStore

logger = setup_logger("chunkvault.services.container")


@dataclass
class BlobServices:
    """Every component of the blob store, sharing one database."""
    chunk_store: ChunkStore
    registry: BlobRegistry
    uploads: UploadPipeline
    downloads: DownloadPipeline
    deletions: DeletionCoordinator
    catalog: Catalog
    reconciler: Reconciler


def build_services(
    session_factory: sessionmaker,
    chunk_size: Optional[int] = None,
    grace_period: Optional[timedelta] = None,
) -> BlobServices:
    """
    Build a complete set of components over ``session_factory``.

    Args:
        session_factory: SQLAlchemy sessionmaker bound to the store's database.
        chunk_size: Chunk size for new uploads; defaults to settings.CHUNK_SIZE.
        grace_period: Age after which PENDING uploads are reclaimed.
    """
    chunk_size = chunk_size or settings.CHUNK_SIZE
    grace_period = grace_period if grace_period is not None else settings.PENDING_GRACE_DELTA

    chunk_store = ChunkStore(session_factory)
    registry = BlobRegistry(session_factory)
    uploads = UploadPipeline(chunk_store, registry, chunk_size, settings.DEFAULT_CONTENT_TYPE)
    downloads = DownloadPipeline(chunk_store, registry)
    deletions = DeletionCoordinator(chunk_store, registry)
    catalog = Catalog(session_factory, registry, deletions, uploads)
    reconciler = Reconciler(chunk_store, registry, grace_period)

    return BlobServices(
        chunk_store=chunk_store,
        registry=registry,
        uploads=uploads,
        downloads=downloads,
        deletions=deletions,
        catalog=catalog,
        reconciler=reconciler,
    )


class ServiceFactory:
    """Factory for creating and managing the process-wide BlobServices."""
    _instance: Optional[BlobServices] = None

    @classmethod
    def get_services(cls) -> BlobServices:
        """
        Retrieve or create the BlobServices bound to the configured database.
        """
        if cls._instance is None:
            cls._instance = build_services(SessionLocal)
            logger.debug(f"Initialized blob services with chunk size {settings.CHUNK_SIZE}")
        return cls._instance


def get_services() -> BlobServices:
    """
    FastAPI dependency returning the process-wide BlobServices.
    """
    return ServiceFactory.get_services()
