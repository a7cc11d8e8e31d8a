"""
@file: models.py
@description:
This file defines the SQLAlchemy ORM models for the ChunkVault backend:
- ChunkRecord: one fixed-size slice of a blob, keyed by (blob_id, sequence)
- BlobRecord: blob-level metadata and lifecycle state, keyed by blob_id
- CatalogEntryRecord: a song asset binding one audio blob and one image blob

@notes:
- Ids are canonical UUID strings so the schema works on SQLite and PostgreSQL alike.
- Chunks carry no foreign key to blobs: chunks are written
  while the blob is PENDING and orphans are reclaimed by the reconciler.
- Timestamps are written by the application in UTC so callers get them back
  without a refresh round trip.

@dependencies:
- SQLAlchemy: for defining ORM models.
- chunkvault.db.base: provides the Base class (declarative_base).
"""

import enum

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    Float,
    Index,
    Integer,
    LargeBinary,
    String,
)

from chunkvault.db.base import Base


class BlobState(str, enum.Enum):
    """Lifecycle states of a blob's registry record."""
    PENDING = "PENDING"
    COMPLETE = "COMPLETE"


class ChunkRecord(Base):
    """
    @class ChunkRecord
    @description
    One immutable slice of a blob's bytes. Every chunk except the last of a
    finalized blob holds exactly the blob's chunk size.

    @attributes:
        blob_id (String): Owning blob id.
        sequence (Integer): Zero-based position of the chunk within the blob.
        payload (LargeBinary): Raw bytes.
    """
    __tablename__ = "chunks"

    blob_id = Column(String(36), primary_key=True, doc="Owning blob id.")
    sequence = Column(Integer, primary_key=True, autoincrement=False, doc="Zero-based chunk position.")
    payload = Column(LargeBinary, nullable=False, doc="Raw chunk bytes.")


class BlobRecord(Base):
    """
    @class BlobRecord
    @description
    Registry record of one blob. Created PENDING when an upload begins and
    switched to COMPLETE exactly once when the upload is finalized.

    @attributes:
        id (String): Blob id (UUID4 string).
        state (Enum): PENDING or COMPLETE.
        length (Integer): Total byte length, set on finalize.
        chunk_size (Integer): Chunk size the blob was written with, set on finalize.
        content_type (String): Declared MIME type.
        original_name (String): Client-side file name.
        custom_tags (JSON): Author-supplied string tags (e.g. title, artist).
        created_at (DateTime): When the upload began.
        finalized_at (DateTime): When the blob became COMPLETE.
    """
    __tablename__ = "blobs"

    id = Column(String(36), primary_key=True, doc="Blob id.")
    state = Column(
        Enum(BlobState, name="blob_state"),
        nullable=False,
        default=BlobState.PENDING,
        index=True,
        doc="Lifecycle state gating read visibility.",
    )
    length = Column(Integer, nullable=True, doc="Total byte length; authoritative once COMPLETE.")
    chunk_size = Column(Integer, nullable=True, doc="Chunk size; authoritative once COMPLETE.")
    content_type = Column(String(255), nullable=False, doc="Declared MIME type.")
    original_name = Column(String(1024), nullable=False, default="", doc="Client-side file name.")
    custom_tags = Column(JSON, nullable=False, default=dict, doc="Author-supplied tags.")
    created_at = Column(DateTime(timezone=True), nullable=False, doc="Upload start time.")
    finalized_at = Column(DateTime(timezone=True), nullable=True, doc="Time the blob became COMPLETE.")


class CatalogEntryRecord(Base):
    """
    @class CatalogEntryRecord
    @description
    A logical song asset. Never mutated in place; replacing an asset's files
    is a delete followed by a create.
    """
    __tablename__ = "catalog_entries"

    id = Column(String(36), primary_key=True, doc="Entry id.")
    title = Column(String(512), nullable=False)
    artist = Column(String(512), nullable=False)
    audio_blob_id = Column(String(36), nullable=False, unique=True)
    image_blob_id = Column(String(36), nullable=False, unique=True)
    duration = Column(Float, nullable=True, doc="Track duration in seconds.")
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_catalog_entries_created_order", "created_at", "id"),
    )
