"""
@file: blobs.py
@description:
Pydantic schemas describing blobs outside the database session:
- BlobMetadata: detached copy of a registry record
- DeletionResult: what one blob delete removed
- ReconciliationReport: what one reconciliation pass removed

@notes:
- length and chunk_size are None while a blob is PENDING.
- Timestamps are always timezone-aware UTC; SQLite hands back naive values,
  which from_record() normalizes.
"""

from datetime import datetime
from typing import Dict, List, Optional

import pytz
from pydantic import BaseModel, Field

from chunkvault.db.models import BlobRecord, BlobState


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return ``value`` as an aware UTC datetime."""
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


class BlobMetadata(BaseModel):
    """
    Blob-level metadata as stored in the registry.
    """
    blob_id: str = Field(..., description="Opaque blob identifier (UUID string).")
    state: BlobState = Field(..., description="PENDING while uploading, COMPLETE once readable.")
    length: Optional[int] = Field(None, ge=0, description="Total byte length once COMPLETE.")
    chunk_size: Optional[int] = Field(None, gt=0, description="Chunk size once COMPLETE.")
    content_type: str = Field(..., description="Declared MIME type.")
    original_name: str = Field("", description="Client-side file name.")
    custom_tags: Dict[str, str] = Field(default_factory=dict, description="Author-supplied tags.")
    created_at: datetime
    finalized_at: Optional[datetime] = None

    @property
    def is_complete(self) -> bool:
        return self.state == BlobState.COMPLETE

    @property
    def chunk_count(self) -> int:
        """Number of chunks of a COMPLETE blob."""
        if not self.is_complete or not self.length:
            return 0
        return -(-self.length // self.chunk_size)

    @classmethod
    def from_record(cls, record: BlobRecord) -> "BlobMetadata":
        return cls(
            blob_id=record.id,
            state=record.state,
            length=record.length,
            chunk_size=record.chunk_size,
            content_type=record.content_type,
            original_name=record.original_name or "",
            custom_tags=dict(record.custom_tags or {}),
            created_at=as_utc(record.created_at),
            finalized_at=as_utc(record.finalized_at),
        )


class DeletionResult(BaseModel):
    """
    Outcome of deleting one blob. Both counts are zero for a repeated delete.
    """
    blob_id: str
    record_removed: bool
    chunks_removed: int


class ReconciliationReport(BaseModel):
    """
    Outcome of one reconciliation pass over the chunk store and registry.
    """
    stale_uploads: List[str] = Field(default_factory=list, description="PENDING blobs past the grace period.")
    orphaned_blobs: List[str] = Field(default_factory=list, description="Blob ids with chunks but no registry record.")
    chunks_removed: int = 0
    dry_run: bool = False
