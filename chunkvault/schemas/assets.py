"""
@file: assets.py
@description:
Pydantic schemas for catalog entries and their API representation.

Schemas:
- CatalogEntry: an entry as returned by the catalog service
- AssetOut: the JSON shape served by GET/POST /assets
- UploadedFile: one file handed to Catalog.create_asset

@notes:
- The API shape keeps the camelCase keys the mobile client already parses
  (imageRef, audioRef, createdAt); refs are relative locators resolvable by
  GET /blobs/{id}.
"""

from datetime import datetime
from typing import Any, BinaryIO, Optional

from pydantic import BaseModel, ConfigDict, Field

BLOB_REF_PREFIX = "blobs/"


def blob_ref(blob_id: str) -> str:
    """Build the locator a client resolves through GET /blobs/{id}."""
    return f"{BLOB_REF_PREFIX}{blob_id}"


class CatalogEntry(BaseModel):
    """
    A logical song asset binding one audio blob and one image blob.
    """
    id: str
    title: str = Field(..., min_length=1)
    artist: str = Field(..., min_length=1)
    audio_blob_id: str
    image_blob_id: str
    duration: Optional[float] = Field(None, ge=0.0, description="Duration in seconds.")
    created_at: datetime

    @property
    def blob_ids(self) -> tuple:
        return (self.audio_blob_id, self.image_blob_id)


class AssetOut(BaseModel):
    """
    Fields returned by the API for a single asset.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    artist: str
    image_ref: str = Field(..., alias="imageRef")
    audio_ref: str = Field(..., alias="audioRef")
    duration: Optional[float] = None
    created_at: datetime = Field(..., alias="createdAt")

    @classmethod
    def from_entry(cls, entry: CatalogEntry) -> "AssetOut":
        return cls(
            id=entry.id,
            title=entry.title,
            artist=entry.artist,
            image_ref=blob_ref(entry.image_blob_id),
            audio_ref=blob_ref(entry.audio_blob_id),
            duration=entry.duration,
            created_at=entry.created_at,
        )


class UploadedFile(BaseModel):
    """
    One incoming file: a readable binary stream plus what the client declared.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    stream: Any = Field(..., description="Readable binary stream with a read(n) method.")
    content_type: Optional[str] = None
    original_name: str = ""

    @classmethod
    def of(cls, stream: BinaryIO, content_type: Optional[str] = None, original_name: Optional[str] = None) -> "UploadedFile":
        return cls(stream=stream, content_type=content_type, original_name=original_name or "")
