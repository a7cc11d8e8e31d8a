"""
Schemas Package for ChunkVault Backend.

This package contains Pydantic models used for:
- Blob metadata records returned by the registry
- Catalog entries returned by the catalog
- Response serialization of the HTTP API
- Reports produced by deletion and reconciliation
"""
