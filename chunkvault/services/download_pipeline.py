"""
@file: download_pipeline.py
@description:
Reconstructs COMPLETE blobs as lazy, ordered byte streams.

Key features:
- open_read() fails immediately unless the registry holds a COMPLETE record
- Chunks are fetched one at a time in ascending sequence order
- Inclusive byte ranges (HTTP "Range: bytes=start-end" semantics): whole chunks
  before the range are skipped and the boundary chunks are trimmed

@dependencies:
- chunkvault.storage: ChunkStore and BlobRegistry
- chunkvault.core.logger: For logging

@notes:
- Reads take no lock. A delete that lands while a stream is being consumed
  either lets the stream finish (chunks not yet removed) or stops it with
  BlobNotFoundError at the first chunk that is gone. A chunk missing while the
  COMPLETE record still exists is corruption and raises CorruptBlobError.
- Headers may already be on the wire when an error surfaces mid-stream;
  mapping that to a transport error is the caller's job.
"""

from typing import Iterator, Optional, Tuple

from chunkvault.core.exceptions import (
    BlobNotFoundError,
    ChunkNotFoundError,
    CorruptBlobError,
    RangeNotSatisfiableError,
)
from chunkvault.core.logger import setup_logger
from chunkvault.schemas.blobs import BlobMetadata
from chunkvault.storage.blob_registry import BlobRegistry
from chunkvault.storage.chunk_store import ChunkStore

logger = setup_logger("chunkvault.services.download_pipeline")


def resolve_range(length: int, start: Optional[int], end: Optional[int]) -> Optional[Tuple[int, int]]:
    """
    Turn an optional inclusive range into concrete ``(first, last)`` byte offsets.

    ``start=None`` with an ``end`` means a suffix range of the last ``end`` bytes,
    as in ``bytes=-500``. An ``end`` past the blob is clamped to the last byte.

    Returns:
        The inclusive offsets, or None when no range was requested.

    Raises:
        ValueError: If the range cannot be satisfied.
    """
    if start is None and end is None:
        return None
    if start is None:
        if end <= 0 or length == 0:
            raise ValueError("empty suffix range")
        return max(length - end, 0), length - 1
    if start < 0 or start >= length:
        raise ValueError("range starts outside the blob")
    if end is None or end >= length:
        end = length - 1
    if end < start:
        raise ValueError("range ends before it starts")
    return start, end


class BlobStream:
    """
    A finite, non-restartable iterator over a blob's bytes.

    Attributes:
        metadata: The COMPLETE registry record the stream was opened against.
        start, end: Inclusive byte offsets served (end is -1 for an empty blob).
        content_length: Number of bytes the stream will produce.
        partial: Whether a byte range was requested.
    """

    def __init__(
        self,
        chunk_store: ChunkStore,
        registry: BlobRegistry,
        metadata: BlobMetadata,
        start: int,
        end: int,
        partial: bool,
    ):
        self._chunk_store = chunk_store
        self._registry = registry
        self.metadata = metadata
        self.start = start
        self.end = end
        self.partial = partial
        self.content_length = max(end - start + 1, 0)
        self._chunks = self._generate()

    def __iter__(self) -> "BlobStream":
        return self

    def __next__(self) -> bytes:
        return next(self._chunks)

    def close(self) -> None:
        """Stop producing chunks; further iteration ends immediately."""
        self._chunks.close()

    def _expected_length(self, sequence: int) -> int:
        chunk_size = self.metadata.chunk_size
        if sequence < self.metadata.chunk_count - 1:
            return chunk_size
        return self.metadata.length - sequence * chunk_size

    def _fetch(self, sequence: int) -> bytes:
        blob_id = self.metadata.blob_id
        try:
            payload = self._chunk_store.get(blob_id, sequence)
        except ChunkNotFoundError:
            try:
                self._registry.get_complete(blob_id)
            except BlobNotFoundError:
                logger.warning(f"Blob {blob_id} was deleted while chunk {sequence} was being read")
                raise BlobNotFoundError(blob_id, f"Blob {blob_id} was deleted during the read")
            logger.error(f"Blob {blob_id} is missing chunk {sequence}")
            raise CorruptBlobError(blob_id, sequence)
        if len(payload) != self._expected_length(sequence):
            logger.error(f"Chunk {sequence} of blob {blob_id} has {len(payload)} bytes")
            raise CorruptBlobError(blob_id, sequence, f"has {len(payload)} bytes")
        return payload

    def _generate(self) -> Iterator[bytes]:
        if self.content_length == 0:
            return
        chunk_size = self.metadata.chunk_size
        first_sequence = self.start // chunk_size
        last_sequence = self.end // chunk_size
        for sequence in range(first_sequence, last_sequence + 1):
            payload = self._fetch(sequence)
            chunk_offset = sequence * chunk_size
            lo = max(self.start - chunk_offset, 0)
            hi = min(self.end - chunk_offset + 1, len(payload))
            if lo or hi != len(payload):
                payload = payload[lo:hi]
            yield payload


class DownloadPipeline:
    """Opens COMPLETE blobs for streaming."""

    def __init__(self, chunk_store: ChunkStore, registry: BlobRegistry):
        self.chunk_store = chunk_store
        self.registry = registry

    def open_read(self, blob_id: str, start: Optional[int] = None, end: Optional[int] = None) -> BlobStream:
        """
        Open a blob (or an inclusive byte range of it) for streaming.

        Raises:
            BlobNotFoundError: No COMPLETE record exists; PENDING blobs are not readable.
            RangeNotSatisfiableError: The range lies outside the blob.
        """
        metadata = self.registry.get_complete(blob_id)
        try:
            bounds = resolve_range(metadata.length, start, end)
        except ValueError:
            raise RangeNotSatisfiableError(blob_id, metadata.length, start, end)

        if bounds is None:
            first, last = 0, metadata.length - 1
        else:
            first, last = bounds
        logger.debug(f"Opened blob {blob_id} for bytes {first}-{last} of {metadata.length}")
        return BlobStream(self.chunk_store, self.registry, metadata, first, last, partial=bounds is not None)

    def read_all(self, blob_id: str) -> bytes:
        """Read a whole blob into memory. Intended for small blobs and tests."""
        return b"".join(self.open_read(blob_id))
