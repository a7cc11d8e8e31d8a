"""
@file: upload_pipeline.py
@description:
Materializes new blobs from incoming byte streams.

Key features:
- Chunked upload protocol: begin_upload / write_chunk / complete_upload / abort_upload
- upload_stream() buffers any readable stream into chunk-size windows, so peak
  memory is one chunk regardless of object size
- Any failure while writing or completing aborts the upload before the error
  propagates, so a failed request leaves no chunks behind

@dependencies:
- chunkvault.storage: ChunkStore and BlobRegistry
- chunkvault.core.logger: For logging

@notes:
- Sequence checking is done against the chunk store, not in memory, so any
  worker may continue an upload another worker began.
- A blob becomes visible to readers at the instant complete_upload() finalizes
  the registry record, never before.
- A crash between write_chunk() and complete_upload() leaves a PENDING record
  that only the reconciler can reach.
"""

import uuid
from typing import BinaryIO, Dict, Iterator, Optional

from chunkvault.core.exceptions import (
    AlreadyFinalizedError,
    BlobNotFoundError,
    ChunkVaultError,
    IncompleteSequenceError,
    LengthMismatchError,
    SequenceError,
)
from chunkvault.core.logger import setup_logger
from chunkvault.schemas.blobs import BlobMetadata
from chunkvault.storage.blob_registry import BlobRegistry
from chunkvault.storage.chunk_store import ChunkStore

logger = setup_logger("chunkvault.services.upload_pipeline")


def iter_windows(stream: BinaryIO, window_size: int) -> Iterator[bytes]:
    """
    Re-slice a readable stream into windows of exactly ``window_size`` bytes.

    Short reads are accumulated, so the window boundaries do not depend on how
    the underlying stream delivers data. Only the final window may be shorter,
    and an empty stream yields nothing.
    """
    buffer = bytearray()
    while True:
        data = stream.read(window_size - len(buffer))
        if not data:
            break
        buffer.extend(data)
        if len(buffer) == window_size:
            yield bytes(buffer)
            buffer = bytearray()
    if buffer:
        yield bytes(buffer)


class UploadPipeline:
    """Drives the chunk store and registry to create blobs."""

    def __init__(
        self,
        chunk_store: ChunkStore,
        registry: BlobRegistry,
        chunk_size: int,
        default_content_type: str = "application/octet-stream",
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.chunk_store = chunk_store
        self.registry = registry
        self.chunk_size = chunk_size
        self.default_content_type = default_content_type

    def begin_upload(
        self,
        content_type: Optional[str] = None,
        original_name: str = "",
        custom_tags: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Register a PENDING blob and return its id.
        """
        blob_id = str(uuid.uuid4())
        self.registry.create(
            blob_id,
            content_type=content_type or self.default_content_type,
            original_name=original_name,
            custom_tags=custom_tags,
        )
        logger.info(f"Began upload of blob {blob_id} ({original_name or 'unnamed'})")
        return blob_id

    def _require_pending(self, blob_id: str) -> BlobMetadata:
        metadata = self.registry.get(blob_id)
        if metadata.is_complete:
            raise AlreadyFinalizedError(blob_id)
        return metadata

    def write_chunk(self, blob_id: str, sequence: int, payload: bytes) -> None:
        """
        Append one chunk to a PENDING blob.

        Sequence numbers must start at 0 and grow by one. On any failure after
        the blob has been found PENDING, the upload is aborted and the error re-raised.

        Raises:
            BlobNotFoundError: Unknown blob id (nothing is aborted).
            AlreadyFinalizedError: Blob is COMPLETE (nothing is aborted).
            SequenceError: Gap or duplicate.
            LengthMismatchError: Empty payload or one larger than the chunk size.
        """
        self._require_pending(blob_id)
        try:
            if not payload:
                raise LengthMismatchError(f"Chunk {sequence} of blob {blob_id} is empty")
            if len(payload) > self.chunk_size:
                raise LengthMismatchError(
                    f"Chunk {sequence} of blob {blob_id} has {len(payload)} bytes, "
                    f"more than the chunk size {self.chunk_size}"
                )
            expected = self.chunk_store.next_sequence(blob_id)
            if sequence != expected:
                raise SequenceError(blob_id, expected, sequence)
            self.chunk_store.put(blob_id, sequence, payload)
        except Exception as e:
            logger.warning(f"Chunk {sequence} of blob {blob_id} rejected: {str(e)}")
            self._abort_after_failure(blob_id)
            raise

    def complete_upload(self, blob_id: str, total_length: int) -> BlobMetadata:
        """
        Validate the written chunks against ``total_length`` and finalize the blob.

        Raises:
            BlobNotFoundError: Unknown blob id (nothing is aborted).
            AlreadyFinalizedError: Blob is already COMPLETE (nothing is aborted).
            IncompleteSequenceError: Stored sequences are not 0..n-1.
            LengthMismatchError: Chunk sizes disagree with the chunk size or total.
        """
        self._require_pending(blob_id)
        try:
            self._validate_chunks(blob_id, total_length)
            metadata = self.registry.finalize(blob_id, total_length, self.chunk_size)
        except Exception as e:
            logger.warning(f"Completion of blob {blob_id} failed: {str(e)}")
            self._abort_after_failure(blob_id)
            raise
        logger.info(f"Completed upload of blob {blob_id}: {total_length} bytes in {metadata.chunk_count} chunks")
        return metadata

    def _validate_chunks(self, blob_id: str, total_length: int) -> None:
        lengths = self.chunk_store.chunk_lengths(blob_id)
        sequences = [sequence for sequence, _ in lengths]
        if sequences != list(range(len(sequences))):
            raise IncompleteSequenceError(
                f"Blob {blob_id} has non-contiguous chunks: {sequences}"
            )
        for sequence, length in lengths[:-1]:
            if length != self.chunk_size:
                raise LengthMismatchError(
                    f"Chunk {sequence} of blob {blob_id} has {length} bytes; "
                    f"only the last chunk may be shorter than {self.chunk_size}"
                )
        written = sum(length for _, length in lengths)
        if written != total_length:
            raise LengthMismatchError(
                f"Blob {blob_id} declared {total_length} bytes but {written} were written"
            )

    def abort_upload(self, blob_id: str) -> int:
        """
        Discard a PENDING blob: its record first, then every chunk written so far.

        Idempotent; aborting an unknown id only sweeps stray chunks.

        Returns:
            int: Number of chunks removed.

        Raises:
            AlreadyFinalizedError: The blob is COMPLETE; use the deletion coordinator.
        """
        if not self.registry.delete(blob_id, only_pending=True):
            # Either already gone, or COMPLETE and left alone
            try:
                metadata = self.registry.get(blob_id)
            except BlobNotFoundError:
                metadata = None
            if metadata is not None and metadata.is_complete:
                raise AlreadyFinalizedError(blob_id)
        removed = self.chunk_store.delete_all(blob_id)
        logger.info(f"Aborted upload of blob {blob_id}, removed {removed} chunks")
        return removed

    def upload_stream(
        self,
        stream: BinaryIO,
        content_type: Optional[str] = None,
        original_name: str = "",
        custom_tags: Optional[Dict[str, str]] = None,
    ) -> BlobMetadata:
        """
        Upload a whole stream as one blob and return its COMPLETE metadata.

        The stream is consumed in chunk-size windows. If reading fails (for
        example because the client disconnected) or any chunk is rejected, the
        partial blob is aborted before the error propagates.
        """
        blob_id = self.begin_upload(content_type, original_name, custom_tags)
        total_length = 0
        # write_chunk() and complete_upload() abort on their own failures
        for sequence, window in enumerate(self._read_windows(blob_id, stream)):
            self.write_chunk(blob_id, sequence, window)
            total_length += len(window)
        return self.complete_upload(blob_id, total_length)

    def _read_windows(self, blob_id: str, stream: BinaryIO) -> Iterator[bytes]:
        """Yield chunk-size windows of ``stream``, aborting the upload if reading fails."""
        try:
            yield from iter_windows(stream, self.chunk_size)
        except Exception as e:
            logger.warning(f"Reading the source of blob {blob_id} failed: {str(e)}")
            self._abort_after_failure(blob_id)
            raise

    def _abort_after_failure(self, blob_id: str) -> None:
        """
        Abort an upload that has already failed.

        A failing cleanup is logged and left to the reconciler, so the caller
        still receives the error that caused the abort.
        """
        try:
            self.abort_upload(blob_id)
        except ChunkVaultError as cleanup_error:
            logger.error(f"Could not abort upload of blob {blob_id}; the reconciler will reclaim it: {str(cleanup_error)}")
