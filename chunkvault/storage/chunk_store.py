"""
@file: chunk_store.py
@description:
Durable key-value persistence of binary chunks keyed by (blob id, sequence).

Key features:
- put/get of single chunks, one short-lived session per call
- Ordered sequence listing and per-chunk lengths computed in the database
- Idempotent bulk delete of a blob's chunks

@dependencies:
- SQLAlchemy: chunks table access
- chunkvault.db.session: session_scope for per-call transactions
- chunkvault.storage.base: error translation

@notes:
- A key is written at most once; a second put of the same key fails with
  WriteError (primary key violation). There is no overwrite.
- delete_all() can run while readers are fetching chunks of the same blob:
  each get() is its own transaction, so a reader either sees a chunk or a
  ChunkNotFoundError, never a partial payload.
"""

from typing import List, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.orm import sessionmaker

from chunkvault.core.exceptions import ChunkNotFoundError
from chunkvault.core.logger import setup_logger
from chunkvault.db.models import ChunkRecord
from chunkvault.db.session import session_scope
from chunkvault.storage.base import db_errors

logger = setup_logger("chunkvault.storage.chunk_store")


class ChunkStore:
    """Chunk persistence over the ``chunks`` table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def put(self, blob_id: str, sequence: int, payload: bytes) -> None:
        """
        Persist one chunk.

        Raises:
            ValueError: If the sequence is negative.
            WriteError: If the store rejects the write (including a duplicate key).
            StoreTimeoutError: If the write exceeds the I/O bound.
        """
        if sequence < 0:
            raise ValueError(f"Chunk sequence must be non-negative, got {sequence}")
        with db_errors(f"write chunk {sequence} of blob {blob_id}", write=True):
            with session_scope(self._session_factory) as session:
                session.add(ChunkRecord(blob_id=blob_id, sequence=sequence, payload=bytes(payload)))
        logger.debug(f"Stored chunk {sequence} of blob {blob_id} ({len(payload)} bytes)")

    def get(self, blob_id: str, sequence: int) -> bytes:
        """
        Fetch one chunk payload.

        Raises:
            ChunkNotFoundError: If the chunk does not exist.
        """
        with db_errors(f"read chunk {sequence} of blob {blob_id}"):
            with session_scope(self._session_factory) as session:
                record = session.get(ChunkRecord, (blob_id, sequence))
                if record is None:
                    raise ChunkNotFoundError(blob_id, sequence)
                return bytes(record.payload)

    def list_sequences(self, blob_id: str) -> List[int]:
        """Return the sequence numbers stored for ``blob_id`` in ascending order."""
        with db_errors(f"list chunks of blob {blob_id}"):
            with session_scope(self._session_factory) as session:
                rows = session.execute(
                    select(ChunkRecord.sequence)
                    .where(ChunkRecord.blob_id == blob_id)
                    .order_by(ChunkRecord.sequence)
                ).scalars()
                return list(rows)

    def next_sequence(self, blob_id: str) -> int:
        """Return the sequence number that follows the highest stored one (0 if none)."""
        with db_errors(f"find next chunk of blob {blob_id}"):
            with session_scope(self._session_factory) as session:
                highest = session.execute(
                    select(func.max(ChunkRecord.sequence)).where(ChunkRecord.blob_id == blob_id)
                ).scalar()
        return 0 if highest is None else highest + 1

    def chunk_lengths(self, blob_id: str) -> List[Tuple[int, int]]:
        """Return ``(sequence, payload length)`` pairs in ascending sequence order."""
        with db_errors(f"measure chunks of blob {blob_id}"):
            with session_scope(self._session_factory) as session:
                rows = session.execute(
                    select(ChunkRecord.sequence, func.length(ChunkRecord.payload))
                    .where(ChunkRecord.blob_id == blob_id)
                    .order_by(ChunkRecord.sequence)
                ).all()
                return [(sequence, length) for sequence, length in rows]

    def delete_all(self, blob_id: str) -> int:
        """
        Remove every chunk of ``blob_id``.

        Returns:
            int: Number of chunks removed; 0 when there were none.
        """
        with db_errors(f"delete chunks of blob {blob_id}", write=True):
            with session_scope(self._session_factory) as session:
                result = session.execute(delete(ChunkRecord).where(ChunkRecord.blob_id == blob_id))
                removed = result.rowcount or 0
        if removed:
            logger.debug(f"Removed {removed} chunks of blob {blob_id}")
        return removed

    def list_blob_ids(self) -> List[str]:
        """Return every blob id that owns at least one chunk."""
        with db_errors("list chunk owners"):
            with session_scope(self._session_factory) as session:
                rows = session.execute(select(ChunkRecord.blob_id).distinct()).scalars()
                return list(rows)
