"""
Database Package for ChunkVault Backend.

This package handles all database-related operations including:
- Table definitions using SQLAlchemy ORM (chunks, blobs, catalog entries)
- Engine construction with the configured I/O timeout
- Database session management
"""
