"""
API Package for ChunkVault Backend.

FastAPI routers for the HTTP surface:
- assets: song asset catalog
- blobs: blob streaming and deletion
- health: liveness and database checks
"""
