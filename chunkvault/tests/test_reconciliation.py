"""
@file: test_reconciliation.py
@description:
Test suite for storage reconciliation, focusing on:
- Aborting PENDING uploads older than the grace period
- Leaving young uploads and COMPLETE blobs alone
- Removing chunks that belong to no registered blob
- Dry runs
- The Celery task wrapper

@dependencies:
- pytest: For test framework
- unittest.mock: For replacing the process-wide services in the task
- chunkvault.workers.tasks: The reconcile_storage task

@notes:
- Time is moved forward by passing `now` instead of sleeping
"""

from datetime import datetime, timedelta
from unittest import mock

import pytest
import pytz

from chunkvault.core.exceptions import BlobNotFoundError, StoreTimeoutError
from chunkvault.workers.tasks import reconcile_storage


@pytest.fixture
def abandoned_upload(services):
    """A PENDING upload with two chunks that will never be completed."""
    blob_id = services.uploads.begin_upload("audio/mpeg", "crashed.mp3")
    services.uploads.write_chunk(blob_id, 0, b"abcd")
    services.uploads.write_chunk(blob_id, 1, b"efgh")
    return blob_id


def _tomorrow():
    return datetime.now(pytz.UTC) + timedelta(days=1)


def test_young_pending_upload_is_kept(services, abandoned_upload):
    report = services.reconciler.reconcile()

    assert report.stale_uploads == []
    assert report.chunks_removed == 0
    assert services.chunk_store.list_sequences(abandoned_upload) == [0, 1]


def test_stale_pending_upload_is_aborted(services, abandoned_upload, upload):
    complete = upload(b"keep me")

    report = services.reconciler.reconcile(now=_tomorrow())

    assert report.stale_uploads == [abandoned_upload]
    assert report.chunks_removed == 2
    assert services.chunk_store.list_sequences(abandoned_upload) == []
    with pytest.raises(BlobNotFoundError):
        services.registry.get(abandoned_upload)
    assert services.downloads.read_all(complete.blob_id) == b"keep me"


def test_orphan_chunks_are_removed(services, upload):
    complete = upload(b"abcdef")
    services.chunk_store.put("orphan-blob", 0, b"lost")
    services.chunk_store.put("orphan-blob", 1, b"data")

    report = services.reconciler.reconcile()

    assert report.orphaned_blobs == ["orphan-blob"]
    assert report.chunks_removed == 2
    assert services.chunk_store.list_blob_ids() == [complete.blob_id]


def test_dry_run_removes_nothing(services, abandoned_upload):
    services.chunk_store.put("orphan-blob", 0, b"lost")

    report = services.reconciler.reconcile(dry_run=True, now=_tomorrow())

    assert report.dry_run is True
    assert report.stale_uploads == [abandoned_upload]
    assert report.orphaned_blobs == ["orphan-blob"]
    assert report.chunks_removed == 0
    assert sorted(services.chunk_store.list_blob_ids()) == sorted([abandoned_upload, "orphan-blob"])


def test_second_pass_finds_nothing(services, abandoned_upload):
    services.reconciler.reconcile(now=_tomorrow())
    report = services.reconciler.reconcile(now=_tomorrow())
    assert report.stale_uploads == []
    assert report.orphaned_blobs == []


def test_reconcile_task_reports_success(services, abandoned_upload):
    services.chunk_store.put("orphan-blob", 0, b"lost")

    with mock.patch("chunkvault.workers.tasks.get_services", return_value=services):
        result = reconcile_storage()

    assert result["status"] == "success"
    assert result["orphaned_blobs"] == ["orphan-blob"]
    # The abandoned upload is younger than the grace period
    assert result["stale_uploads"] == []
    assert result["chunks_removed"] == 1
    assert "timestamp" in result


def test_reconcile_task_dry_run(services):
    services.chunk_store.put("orphan-blob", 0, b"lost")

    with mock.patch("chunkvault.workers.tasks.get_services", return_value=services):
        result = reconcile_storage(dry_run=True)

    assert result["dry_run"] is True
    assert result["chunks_removed"] == 0
    assert services.chunk_store.list_blob_ids() == ["orphan-blob"]


def test_reconcile_task_reports_storage_errors(services):
    with mock.patch("chunkvault.workers.tasks.get_services", return_value=services), \
         mock.patch.object(services.reconciler, "reconcile", side_effect=StoreTimeoutError("locked")):
        result = reconcile_storage()

    assert result["status"] == "error"
    assert "locked" in result["message"]
