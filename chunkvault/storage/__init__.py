"""
Storage Package for ChunkVault Backend.

This package holds the two durable leaf components of the blob store:
- ChunkStore: fixed-size binary chunks keyed by (blob id, sequence)
- BlobRegistry: blob-level metadata and PENDING/COMPLETE state keyed by blob id
"""

from chunkvault.storage.blob_registry import BlobRegistry
from chunkvault.storage.chunk_store import ChunkStore

__all__ = ["BlobRegistry", "ChunkStore"]
