"""
@file: exceptions.py
@description:
Exception taxonomy shared by the storage layer, the pipelines and the catalog.

Every error raised by the core derives from ChunkVaultError so the HTTP layer
and the worker can tell core failures apart from programming errors.

Hierarchy:
- NotFoundError: unknown id at any layer (blob, chunk, catalog entry)
- UploadProtocolError: SequenceError, LengthMismatchError, IncompleteSequenceError
- AlreadyFinalizedError: a COMPLETE blob was asked to change
- CorruptBlobError: a finalized blob is missing a chunk or has a bad one
- InvalidReferenceError / InvalidEntryError: catalog validation
- BlobInUseError: direct delete of a blob owned by a catalog entry
- RangeNotSatisfiableError: byte range outside the blob
- CatalogDeletionError: cascade delete failed on a specific blob
- StorageError: WriteError, StoreTimeoutError from the database

@notes:
- Storage errors are never retried inside the core; callers decide.
"""

from typing import Optional


class ChunkVaultError(Exception):
    """Base class for all ChunkVault errors."""
    pass


class NotFoundError(ChunkVaultError):
    """Raised when an id is unknown at any layer."""
    pass


class BlobNotFoundError(NotFoundError):
    """No readable registry record exists for a blob id."""

    def __init__(self, blob_id: str, message: Optional[str] = None):
        self.blob_id = blob_id
        super().__init__(message or f"Blob {blob_id} not found")


class ChunkNotFoundError(NotFoundError):
    """A (blob id, sequence) key has no stored chunk."""

    def __init__(self, blob_id: str, sequence: int):
        self.blob_id = blob_id
        self.sequence = sequence
        super().__init__(f"Chunk {sequence} of blob {blob_id} not found")


class EntryNotFoundError(NotFoundError):
    """No catalog entry exists for an id."""

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Catalog entry {entry_id} not found")


class UploadProtocolError(ChunkVaultError):
    """The caller broke the chunked upload protocol."""
    pass


class SequenceError(UploadProtocolError):
    """A chunk arrived out of order (gap or duplicate)."""

    def __init__(self, blob_id: str, expected: int, received: int):
        self.blob_id = blob_id
        self.expected = expected
        self.received = received
        kind = "duplicate" if received < expected else "gap"
        super().__init__(
            f"Sequence {kind} for blob {blob_id}: expected chunk {expected}, got {received}"
        )


class LengthMismatchError(UploadProtocolError):
    """Chunk sizes disagree with the chunk size or the declared total length."""
    pass


class IncompleteSequenceError(UploadProtocolError):
    """The stored sequence numbers are not contiguous from zero."""
    pass


class AlreadyFinalizedError(ChunkVaultError):
    """The blob is already COMPLETE."""

    def __init__(self, blob_id: str):
        self.blob_id = blob_id
        super().__init__(f"Blob {blob_id} is already finalized")


class CorruptBlobError(ChunkVaultError):
    """A finalized blob is missing a chunk, or a chunk has the wrong length."""

    def __init__(self, blob_id: str, sequence: int, reason: str = "missing"):
        self.blob_id = blob_id
        self.sequence = sequence
        super().__init__(f"Blob {blob_id} is corrupt: chunk {sequence} {reason}")


class InvalidReferenceError(ChunkVaultError):
    """A catalog entry was built from a blob that is not usable."""

    def __init__(self, blob_id: str, reason: str):
        self.blob_id = blob_id
        super().__init__(f"Invalid blob reference {blob_id}: {reason}")


class InvalidEntryError(ChunkVaultError, ValueError):
    """Descriptive catalog fields failed validation."""
    pass


class BlobInUseError(ChunkVaultError):
    """The blob is referenced by a live catalog entry."""

    def __init__(self, blob_id: str):
        self.blob_id = blob_id
        super().__init__(f"Blob {blob_id} is referenced by a catalog entry; delete the entry instead")


class RangeNotSatisfiableError(ChunkVaultError):
    """The requested byte range lies outside the blob."""

    def __init__(self, blob_id: str, length: int, start: Optional[int], end: Optional[int]):
        self.blob_id = blob_id
        self.length = length
        self.start = start
        self.end = end
        super().__init__(f"Range {start}-{end} not satisfiable for blob {blob_id} of {length} bytes")


class CatalogDeletionError(ChunkVaultError):
    """Deleting one of an entry's blobs failed; the entry was kept."""

    def __init__(self, entry_id: str, blob_id: str, cause: Exception):
        self.entry_id = entry_id
        self.blob_id = blob_id
        self.cause = cause
        super().__init__(f"Failed to delete blob {blob_id} of catalog entry {entry_id}: {cause}")


class StorageError(ChunkVaultError):
    """The underlying database failed."""
    pass


class WriteError(StorageError):
    """The underlying store rejected a write."""
    pass


class StoreTimeoutError(StorageError, TimeoutError):
    """A database call exceeded the configured I/O bound."""
    pass
