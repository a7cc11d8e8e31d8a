"""
Core Package for ChunkVault Backend.

This package holds the cross-cutting pieces of the application:
- Configuration loading
- Logging
- Exception taxonomy
- HTTP middleware
"""
