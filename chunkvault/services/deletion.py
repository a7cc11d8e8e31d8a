"""
@file: deletion.py
@description:
Removes blobs from both stores and guarantees no chunk outlives a successful delete.

Order of operations:
1. Delete the registry record, so readers that start from now on get NotFound.
2. Delete every chunk.

@dependencies:
- chunkvault.storage: ChunkStore and BlobRegistry
- chunkvault.core.logger: For logging

@notes:
- There is no cross-store transaction. Between step 1 and step 2 a reader that
  already passed the registry lookup can still fetch chunks; see
  download_pipeline for what that reader observes.
- Deleting an id twice is not an error, so clients can retry blindly.
- A blob owned by a catalog entry can only be deleted through the catalog.
  Ownership is checked by the registry's DELETE statement, not beforehand.
"""

from chunkvault.core.logger import setup_logger
from chunkvault.schemas.blobs import DeletionResult
from chunkvault.storage.blob_registry import BlobRegistry
from chunkvault.storage.chunk_store import ChunkStore

logger = setup_logger("chunkvault.services.deletion")


class DeletionCoordinator:
    """
    Deletes a blob's registry record and chunks.

    Args:
        chunk_store: Chunk persistence.
        registry: Blob metadata persistence.
    """

    def __init__(self, chunk_store: ChunkStore, registry: BlobRegistry):
        self.chunk_store = chunk_store
        self.registry = registry

    def delete_blob(self, blob_id: str, ignore_references: bool = False) -> DeletionResult:
        """
        Delete a blob. Idempotent.

        Args:
            blob_id: Blob to delete.
            ignore_references: Skip the catalog ownership check; used by the
                catalog itself when cascading an entry delete.

        Returns:
            DeletionResult: What was removed; all zero when the blob was already gone.

        Raises:
            BlobInUseError: A catalog entry references the blob; nothing is removed.
            StorageError: A store failed; the call can be retried.
        """
        record_removed = self.registry.delete(blob_id, unreferenced_only=not ignore_references)
        chunks_removed = self.chunk_store.delete_all(blob_id)

        if record_removed or chunks_removed:
            logger.info(f"Deleted blob {blob_id} ({chunks_removed} chunks)")
        else:
            logger.debug(f"Blob {blob_id} was already deleted")
        return DeletionResult(blob_id=blob_id, record_removed=record_removed, chunks_removed=chunks_removed)
