"""
@file: blob_registry.py
@description:
Durable record of blob-level metadata keyed by blob id.

Key features:
- create() registers a PENDING blob
- finalize() moves it to COMPLETE with one conditional UPDATE, the single
  linearization point after which readers see the final length/chunk size
- get_complete() hides PENDING blobs from readers
- Idempotent delete, optionally restricted to PENDING records

@dependencies:
- SQLAlchemy: blobs table access
- pytz: UTC timestamps
- chunkvault.schemas.blobs: detached BlobMetadata copies

@notes:
- Records are returned as BlobMetadata models, never as live ORM objects,
  so callers hold no session.
"""

from datetime import datetime
from typing import Dict, List, Optional

import pytz
from sqlalchemy import delete, exists, or_, select, update
from sqlalchemy.orm import sessionmaker

from chunkvault.core.exceptions import AlreadyFinalizedError, BlobInUseError, BlobNotFoundError
from chunkvault.core.logger import setup_logger
from chunkvault.db.models import BlobRecord, BlobState, CatalogEntryRecord
from chunkvault.db.session import session_scope
from chunkvault.schemas.blobs import BlobMetadata
from chunkvault.storage.base import db_errors

logger = setup_logger("chunkvault.storage.blob_registry")


class BlobRegistry:
    """Blob metadata persistence over the ``blobs`` table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def create(
        self,
        blob_id: str,
        content_type: str,
        original_name: str = "",
        custom_tags: Optional[Dict[str, str]] = None,
    ) -> BlobMetadata:
        """
        Register a new PENDING blob.

        Raises:
            WriteError: If the record cannot be written (including a duplicate id).
        """
        record = BlobRecord(
            id=blob_id,
            state=BlobState.PENDING,
            content_type=content_type,
            original_name=original_name or "",
            custom_tags={str(k): str(v) for k, v in (custom_tags or {}).items()},
            created_at=datetime.now(pytz.UTC),
        )
        with db_errors(f"register blob {blob_id}", write=True):
            with session_scope(self._session_factory) as session:
                session.add(record)
                session.flush()
                metadata = BlobMetadata.from_record(record)
        logger.debug(f"Registered PENDING blob {blob_id} ({content_type})")
        return metadata

    def finalize(self, blob_id: str, length: int, chunk_size: int) -> BlobMetadata:
        """
        Transition a PENDING blob to COMPLETE.

        Raises:
            BlobNotFoundError: If the blob id is unknown.
            AlreadyFinalizedError: If the blob is already COMPLETE.
        """
        with db_errors(f"finalize blob {blob_id}", write=True):
            with session_scope(self._session_factory) as session:
                result = session.execute(
                    update(BlobRecord)
                    .where(BlobRecord.id == blob_id, BlobRecord.state == BlobState.PENDING)
                    .values(
                        state=BlobState.COMPLETE,
                        length=length,
                        chunk_size=chunk_size,
                        finalized_at=datetime.now(pytz.UTC),
                    )
                )
                if not result.rowcount:
                    if session.get(BlobRecord, blob_id) is None:
                        raise BlobNotFoundError(blob_id)
                    raise AlreadyFinalizedError(blob_id)
                record = session.get(BlobRecord, blob_id, populate_existing=True)
                metadata = BlobMetadata.from_record(record)
        logger.debug(f"Finalized blob {blob_id}: {length} bytes in chunks of {chunk_size}")
        return metadata

    def get(self, blob_id: str) -> BlobMetadata:
        """
        Fetch a record in whatever state it is.

        Raises:
            BlobNotFoundError: If the blob id is unknown.
        """
        with db_errors(f"read blob {blob_id}"):
            with session_scope(self._session_factory) as session:
                record = session.get(BlobRecord, blob_id)
                if record is None:
                    raise BlobNotFoundError(blob_id)
                return BlobMetadata.from_record(record)

    def get_complete(self, blob_id: str) -> BlobMetadata:
        """
        Fetch a record only if it is COMPLETE.

        Raises:
            BlobNotFoundError: If the blob id is unknown or still PENDING.
        """
        metadata = self.get(blob_id)
        if not metadata.is_complete:
            raise BlobNotFoundError(blob_id, f"Blob {blob_id} is not complete")
        return metadata

    def delete(self, blob_id: str, only_pending: bool = False, unreferenced_only: bool = False) -> bool:
        """
        Remove a record. Deleting an unknown id is not an error.

        Args:
            blob_id: Blob id to remove.
            only_pending: Leave COMPLETE records in place.
            unreferenced_only: Refuse while a catalog entry references the blob.
                The reference check is part of the DELETE statement itself, so
                an entry created concurrently either blocks the delete or
                finds the blob gone.

        Returns:
            bool: Whether a record was removed.

        Raises:
            BlobInUseError: ``unreferenced_only`` is set and an entry references the blob.
        """
        referenced = or_(
            CatalogEntryRecord.audio_blob_id == blob_id,
            CatalogEntryRecord.image_blob_id == blob_id,
        )
        statement = delete(BlobRecord).where(BlobRecord.id == blob_id)
        if only_pending:
            statement = statement.where(BlobRecord.state == BlobState.PENDING)
        if unreferenced_only:
            statement = statement.where(~exists().where(referenced))
        with db_errors(f"delete blob record {blob_id}", write=True):
            with session_scope(self._session_factory) as session:
                removed = bool(session.execute(statement).rowcount)
                if not removed and unreferenced_only:
                    if session.execute(select(CatalogEntryRecord.id).where(referenced).limit(1)).first():
                        raise BlobInUseError(blob_id)
        if removed:
            logger.debug(f"Removed registry record of blob {blob_id}")
        return removed

    def list_pending(self) -> List[BlobMetadata]:
        """Return every PENDING record, oldest first."""
        with db_errors("list pending blobs"):
            with session_scope(self._session_factory) as session:
                records = session.execute(
                    select(BlobRecord)
                    .where(BlobRecord.state == BlobState.PENDING)
                    .order_by(BlobRecord.created_at)
                ).scalars()
                return [BlobMetadata.from_record(record) for record in records]

    def list_ids(self) -> List[str]:
        """Return every registered blob id, PENDING or COMPLETE."""
        with db_errors("list blob ids"):
            with session_scope(self._session_factory) as session:
                return list(session.execute(select(BlobRecord.id)).scalars())
