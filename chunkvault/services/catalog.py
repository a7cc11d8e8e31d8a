"""
@file: catalog.py
@description:
Maps logical song assets to one audio blob and one image blob.

Key features:
- create_entry(): binds two COMPLETE blobs and descriptive fields
- list_entries() / get_entry(): creation-ordered reads
- delete_entry(): cascades into the deletion coordinator for both blobs,
  then removes the entry
- create_asset(): the full upload flow behind POST /assets

@dependencies:
- SQLAlchemy: catalog_entries table access
- pytz: UTC timestamps
- chunkvault.services: upload pipeline and deletion coordinator
- chunkvault.core.logger: For logging

@notes:
- Entries are never updated in place.
- If deleting either blob fails, the entry is kept and CatalogDeletionError
  names the blob that failed. Blob deletes are idempotent, so retrying the
  entry delete resumes where it stopped.
- A reader holding an entry fetched before a delete may find its blobs gone
  (404); that window is accepted.
"""

import math
import uuid
from datetime import datetime
from typing import List, Optional

import pytz
from sqlalchemy import delete, or_, select
from sqlalchemy.orm import sessionmaker

from chunkvault.core.exceptions import (
    BlobNotFoundError,
    CatalogDeletionError,
    ChunkVaultError,
    EntryNotFoundError,
    InvalidEntryError,
    InvalidReferenceError,
)
from chunkvault.core.logger import setup_logger
from chunkvault.db.models import BlobRecord, BlobState, CatalogEntryRecord
from chunkvault.db.session import session_scope
from chunkvault.schemas.assets import CatalogEntry, UploadedFile
from chunkvault.schemas.blobs import as_utc
from chunkvault.services.deletion import DeletionCoordinator
from chunkvault.services.upload_pipeline import UploadPipeline
from chunkvault.storage.base import db_errors
from chunkvault.storage.blob_registry import BlobRegistry

logger = setup_logger("chunkvault.services.catalog")


def _to_entry(record: CatalogEntryRecord) -> CatalogEntry:
    return CatalogEntry(
        id=record.id,
        title=record.title,
        artist=record.artist,
        audio_blob_id=record.audio_blob_id,
        image_blob_id=record.image_blob_id,
        duration=record.duration,
        created_at=as_utc(record.created_at),
    )


def validate_fields(title: Optional[str], artist: Optional[str], duration: Optional[float]):
    """
    Normalize and check the descriptive fields of an entry.

    Returns:
        tuple: Stripped title, stripped artist and duration.

    Raises:
        InvalidEntryError: Empty title or artist, or a negative/non-finite duration.
    """
    title = (title or "").strip()
    artist = (artist or "").strip()
    if not title:
        raise InvalidEntryError("title must not be empty")
    if not artist:
        raise InvalidEntryError("artist must not be empty")
    if duration is not None:
        duration = float(duration)
        if not math.isfinite(duration) or duration < 0:
            raise InvalidEntryError("duration must be a non-negative number of seconds")
    return title, artist, duration


class Catalog:
    """Catalog of song assets over the ``catalog_entries`` table."""

    def __init__(
        self,
        session_factory: sessionmaker,
        registry: BlobRegistry,
        deletions: DeletionCoordinator,
        uploads: Optional[UploadPipeline] = None,
    ):
        self._session_factory = session_factory
        self.registry = registry
        self.deletions = deletions
        self.uploads = uploads

    def _check_reference(self, blob_id: str) -> None:
        try:
            metadata = self.registry.get(blob_id)
        except BlobNotFoundError:
            raise InvalidReferenceError(blob_id, "unknown blob")
        if not metadata.is_complete:
            raise InvalidReferenceError(blob_id, "blob is not complete")
        if self.references_blob(blob_id):
            raise InvalidReferenceError(blob_id, "blob already belongs to another entry")

    def create_entry(
        self,
        title: str,
        artist: str,
        audio_blob_id: str,
        image_blob_id: str,
        duration: Optional[float] = None,
    ) -> CatalogEntry:
        """
        Create an entry referencing two COMPLETE blobs.

        Raises:
            InvalidEntryError: Bad descriptive fields.
            InvalidReferenceError: A blob is unknown, PENDING, shared by both
                roles or already owned by another entry.
        """
        title, artist, duration = validate_fields(title, artist, duration)
        if audio_blob_id == image_blob_id:
            raise InvalidReferenceError(audio_blob_id, "audio and image must be different blobs")
        self._check_reference(audio_blob_id)
        self._check_reference(image_blob_id)

        record = CatalogEntryRecord(
            id=str(uuid.uuid4()),
            title=title,
            artist=artist,
            audio_blob_id=audio_blob_id,
            image_blob_id=image_blob_id,
            duration=duration,
            created_at=datetime.now(pytz.UTC),
        )
        with db_errors(f"create catalog entry {record.id}", write=True):
            with session_scope(self._session_factory) as session:
                session.add(record)
                session.flush()
                # Re-read both blobs after the insert: a delete that slipped in
                # after the checks above is either visible here or sees this row
                complete = session.execute(
                    select(BlobRecord.id)
                    .where(
                        BlobRecord.id.in_([audio_blob_id, image_blob_id]),
                        BlobRecord.state == BlobState.COMPLETE,
                    )
                    .with_for_update()
                ).scalars().all()
                for blob_id in (audio_blob_id, image_blob_id):
                    if blob_id not in complete:
                        raise InvalidReferenceError(blob_id, "blob was deleted while the entry was being created")
                entry = _to_entry(record)
        logger.info(f"Created catalog entry {entry.id}: '{title}' by {artist}")
        return entry

    def list_entries(self) -> List[CatalogEntry]:
        """Return all entries in creation order."""
        with db_errors("list catalog entries"):
            with session_scope(self._session_factory) as session:
                records = session.execute(
                    select(CatalogEntryRecord).order_by(CatalogEntryRecord.created_at, CatalogEntryRecord.id)
                ).scalars()
                return [_to_entry(record) for record in records]

    def get_entry(self, entry_id: str) -> CatalogEntry:
        """
        Raises:
            EntryNotFoundError: No entry with this id.
        """
        with db_errors(f"read catalog entry {entry_id}"):
            with session_scope(self._session_factory) as session:
                record = session.get(CatalogEntryRecord, entry_id)
                if record is None:
                    raise EntryNotFoundError(entry_id)
                return _to_entry(record)

    def references_blob(self, blob_id: str) -> bool:
        """Return whether any entry references ``blob_id``."""
        with db_errors(f"look up references to blob {blob_id}"):
            with session_scope(self._session_factory) as session:
                found = session.execute(
                    select(CatalogEntryRecord.id)
                    .where(or_(
                        CatalogEntryRecord.audio_blob_id == blob_id,
                        CatalogEntryRecord.image_blob_id == blob_id,
                    ))
                    .limit(1)
                ).first()
                return found is not None

    def delete_entry(self, entry_id: str) -> CatalogEntry:
        """
        Delete an entry together with its audio and image blobs.

        Returns:
            CatalogEntry: The entry that was removed.

        Raises:
            EntryNotFoundError: No entry with this id.
            CatalogDeletionError: A blob could not be deleted; the entry is kept.
        """
        entry = self.get_entry(entry_id)
        for blob_id in entry.blob_ids:
            try:
                self.deletions.delete_blob(blob_id, ignore_references=True)
            except ChunkVaultError as e:
                logger.error(f"Keeping catalog entry {entry_id}: blob {blob_id} could not be deleted: {str(e)}")
                raise CatalogDeletionError(entry_id, blob_id, e) from e

        with db_errors(f"delete catalog entry {entry_id}", write=True):
            with session_scope(self._session_factory) as session:
                session.execute(delete(CatalogEntryRecord).where(CatalogEntryRecord.id == entry_id))
        logger.info(f"Deleted catalog entry {entry_id} and its blobs")
        return entry

    def create_asset(
        self,
        title: str,
        artist: str,
        audio: UploadedFile,
        image: UploadedFile,
        duration: Optional[float] = None,
    ) -> CatalogEntry:
        """
        Upload an audio file and an image file, then bind them in a new entry.

        Title and artist are also stored as custom tags on both blobs. If any
        step fails, the blobs already uploaded are deleted before the error
        propagates.
        """
        if self.uploads is None:
            raise RuntimeError("Catalog was built without an upload pipeline")
        title, artist, duration = validate_fields(title, artist, duration)
        tags = {"title": title, "artist": artist}

        created: List[str] = []
        try:
            audio_blob = self.uploads.upload_stream(
                audio.stream, audio.content_type, audio.original_name, dict(tags, role="audio")
            )
            created.append(audio_blob.blob_id)
            image_blob = self.uploads.upload_stream(
                image.stream, image.content_type, image.original_name, dict(tags, role="image")
            )
            created.append(image_blob.blob_id)
            return self.create_entry(title, artist, audio_blob.blob_id, image_blob.blob_id, duration)
        except Exception:
            for blob_id in created:
                try:
                    self.deletions.delete_blob(blob_id, ignore_references=True)
                except ChunkVaultError as cleanup_error:
                    logger.error(f"Could not remove blob {blob_id} after failed asset creation: {str(cleanup_error)}")
            raise
