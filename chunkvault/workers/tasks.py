"""
@file: tasks.py
@description:
Celery tasks for storage maintenance.

- reconcile_storage: aborts PENDING uploads older than the grace period and
  removes chunks that belong to no registered blob

@dependencies:
- chunkvault.workers.celery_app: The Celery application
- chunkvault.services.container: Process-wide blob services
- chunkvault.core.logger: For task logging

@notes:
- Storage errors are logged and reported in the result instead of raised, so
  one failed pass does not stop the beat schedule; the next pass retries.
"""

from datetime import datetime
from typing import Any, Dict

import pytz

from chunkvault.core.exceptions import ChunkVaultError
from chunkvault.core.logger import get_task_logger
from chunkvault.services.container import get_services
from chunkvault.workers.celery_app import celery_app

logger = get_task_logger("reconcile_storage")


@celery_app.task(name="chunkvault.workers.tasks.reconcile_storage")
def reconcile_storage(dry_run: bool = False) -> Dict[str, Any]:
    """
    Run one reconciliation pass over the chunk store and blob registry.

    Args:
        dry_run: Only report what would be removed.

    Returns:
        Dict[str, Any]: Summary with status, affected blob ids and chunks removed.
    """
    logger.info(f"Starting storage reconciliation{' (dry run)' if dry_run else ''}")
    try:
        report = get_services().reconciler.reconcile(dry_run=dry_run)
    except ChunkVaultError as e:
        logger.error(f"Storage reconciliation failed: {str(e)}")
        return {
            "status": "error",
            "message": str(e),
            "timestamp": datetime.now(pytz.UTC).isoformat(),
        }

    result = report.model_dump()
    result.update(status="success", timestamp=datetime.now(pytz.UTC).isoformat())
    return result
