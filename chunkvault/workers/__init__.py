"""
Workers Package for ChunkVault Backend.

This package handles background and scheduled tasks using Celery:
- Periodic reconciliation of abandoned uploads and orphan chunks

Key components:
- celery_app: Initializes and configures the Celery application
- tasks: Defines the Celery tasks
- worker: Entry point for starting Celery workers
"""

from chunkvault.workers.celery_app import celery_app
from chunkvault.workers.tasks import reconcile_storage

__all__ = [
    'celery_app',
    'reconcile_storage',
]
