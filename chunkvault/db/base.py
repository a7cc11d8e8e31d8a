"""
SQLAlchemy Base Definition Module.

This module defines the SQLAlchemy declarative base that all models inherit from.
The three durable collections of the store (chunks, blob metadata and catalog
entries) are declared against its metadata.
"""

from sqlalchemy.orm import declarative_base, registry

# Create a new SQLAlchemy mapper registry
mapper_registry = registry()

# Create the base class for declarative class definitions
Base = declarative_base(metadata=mapper_registry.metadata)
