"""
ChunkVault Backend.

Chunked blob storage for audio tracks and cover images, with a thin catalog
that binds them into song assets.
"""

__version__ = "0.1.0"
