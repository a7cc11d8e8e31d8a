"""
@file: reconciliation.py
@description:
Durability safety net for crashes in the middle of an upload.

An upload aborted inside its request cleans up after itself, but a process
that dies between write_chunk() and complete_upload() leaves a PENDING record
and its chunks behind. One reconciliation pass:
1. aborts PENDING uploads older than the grace period
2. deletes chunks whose blob id has no registry record at all

@dependencies:
- pytz: UTC cutoff computation
- chunkvault.storage: ChunkStore and BlobRegistry
- chunkvault.core.logger: For logging

@notes:
- Uploads younger than the grace period are never touched, so a slow but live
  upload is safe as long as it finishes within the grace period.
- A registry record is created before the first chunk of an upload, so a blob
  with chunks and no record is never an upload in progress.
"""

from datetime import datetime, timedelta
from typing import Optional

import pytz

from chunkvault.core.logger import setup_logger
from chunkvault.schemas.blobs import ReconciliationReport
from chunkvault.storage.blob_registry import BlobRegistry
from chunkvault.storage.chunk_store import ChunkStore

logger = setup_logger("chunkvault.services.reconciliation")


class Reconciler:
    """Finds and removes abandoned uploads and orphan chunks."""

    def __init__(self, chunk_store: ChunkStore, registry: BlobRegistry, grace_period: timedelta):
        self.chunk_store = chunk_store
        self.registry = registry
        self.grace_period = grace_period

    def reconcile(self, dry_run: bool = False, now: Optional[datetime] = None) -> ReconciliationReport:
        """
        Run one pass over both stores.

        Args:
            dry_run: Report what would be removed without removing it.
            now: Reference time; defaults to the current UTC time.

        Returns:
            ReconciliationReport: Blob ids affected and chunks removed.
        """
        now = now or datetime.now(pytz.UTC)
        cutoff = now - self.grace_period
        report = ReconciliationReport(dry_run=dry_run)

        for metadata in self.registry.list_pending():
            if metadata.created_at >= cutoff:
                continue
            report.stale_uploads.append(metadata.blob_id)
            if dry_run:
                continue
            # The upload may have completed since the listing; leave it alone then
            if self.registry.delete(metadata.blob_id, only_pending=True):
                report.chunks_removed += self.chunk_store.delete_all(metadata.blob_id)
                logger.info(f"Aborted stale upload {metadata.blob_id} started at {metadata.created_at.isoformat()}")

        # Chunk owners must be listed before registry ids: an upload that begins
        # in between is then absent from owners rather than mistaken for an orphan
        owners = self.chunk_store.list_blob_ids()
        registered = set(self.registry.list_ids())
        for blob_id in owners:
            if blob_id in registered or blob_id in report.stale_uploads:
                continue
            report.orphaned_blobs.append(blob_id)
            if not dry_run:
                removed = self.chunk_store.delete_all(blob_id)
                report.chunks_removed += removed
                logger.info(f"Removed {removed} orphan chunks of unregistered blob {blob_id}")

        logger.info(
            f"Reconciliation {'(dry run) ' if dry_run else ''}found {len(report.stale_uploads)} stale uploads "
            f"and {len(report.orphaned_blobs)} orphaned blobs; removed {report.chunks_removed} chunks"
        )
        return report
