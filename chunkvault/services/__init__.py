"""
Services Package for ChunkVault Backend.

This package holds the business logic built on the storage components:
- Upload pipeline (chunked writes, abort on failure)
- Download pipeline (lazy ordered streams, byte ranges)
- Deletion coordinator
- Catalog of song assets
- Reconciliation of abandoned uploads and orphan chunks
"""
