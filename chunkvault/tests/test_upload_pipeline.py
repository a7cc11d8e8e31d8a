"""
@file: test_upload_pipeline.py
@description:
Unit tests for the upload pipeline:
- round trips across chunk boundaries (4-byte chunks)
- contiguous 0..n-1 chunk layout
- rejection of gaps, duplicates, oversize chunks and wrong totals
- abort leaves no chunks behind
- visibility only after completion

@notes:
- Uses the `services` fixture, whose chunk size is 4 bytes
"""

import io
from unittest import mock

import pytest

from chunkvault.core.exceptions import (
    AlreadyFinalizedError,
    BlobNotFoundError,
    IncompleteSequenceError,
    LengthMismatchError,
    SequenceError,
    StorageError,
)
from chunkvault.db.models import BlobState
from chunkvault.services.upload_pipeline import UploadPipeline, iter_windows


class FlakyStream(io.BytesIO):
    """Delivers ``fail_after`` bytes, then fails like a dropped connection."""

    def __init__(self, data: bytes, fail_after: int):
        super().__init__(data)
        self.fail_after = fail_after

    def read(self, size=-1):
        if self.tell() >= self.fail_after:
            raise ConnectionResetError("client disconnected")
        return super().read(min(size, self.fail_after - self.tell()))


class TrickleStream(io.BytesIO):
    """Returns at most one byte per read."""

    def read(self, size=-1):
        return super().read(1)


def test_iter_windows_reslices_short_reads():
    windows = list(iter_windows(TrickleStream(b"abcdefghij"), 4))
    assert windows == [b"abcd", b"efgh", b"ij"]


def test_iter_windows_empty_stream():
    assert list(iter_windows(io.BytesIO(b""), 4)) == []


def test_invalid_chunk_size(services):
    with pytest.raises(ValueError):
        UploadPipeline(services.chunk_store, services.registry, 0)


@pytest.mark.parametrize("size", [0, 1, 3, 4, 5, 40])
def test_round_trip_across_chunk_boundaries(services, upload, size):
    data = bytes((i * 7) % 256 for i in range(size))

    metadata = upload(data, "application/octet-stream", "data.bin")

    assert metadata.state == BlobState.COMPLETE
    assert metadata.length == size
    assert metadata.chunk_size == 4
    assert services.downloads.read_all(metadata.blob_id) == data

    expected_chunks = -(-size // 4)
    assert metadata.chunk_count == expected_chunks
    assert services.chunk_store.list_sequences(metadata.blob_id) == list(range(expected_chunks))


def test_chunk_sizes_are_full_except_last(services, upload):
    metadata = upload(b"x" * 10)
    assert services.chunk_store.chunk_lengths(metadata.blob_id) == [(0, 4), (1, 4), (2, 2)]


def test_upload_records_declared_metadata(services, upload):
    metadata = upload(b"ID3...", "audio/mpeg", "song.mp3", {"title": "Song"})

    stored = services.registry.get_complete(metadata.blob_id)
    assert stored.content_type == "audio/mpeg"
    assert stored.original_name == "song.mp3"
    assert stored.custom_tags == {"title": "Song"}


def test_default_content_type(services):
    blob_id = services.uploads.begin_upload(None)
    assert services.registry.get(blob_id).content_type == "application/octet-stream"


def test_manual_protocol(services):
    uploads = services.uploads
    blob_id = uploads.begin_upload("text/plain", "hello.txt")
    uploads.write_chunk(blob_id, 0, b"hell")
    uploads.write_chunk(blob_id, 1, b"o")

    metadata = uploads.complete_upload(blob_id, 5)

    assert metadata.is_complete
    assert services.downloads.read_all(blob_id) == b"hello"


def test_pending_blob_is_invisible_until_complete(services):
    uploads = services.uploads
    blob_id = uploads.begin_upload("text/plain")
    uploads.write_chunk(blob_id, 0, b"abcd")

    with pytest.raises(BlobNotFoundError):
        services.downloads.open_read(blob_id)

    uploads.complete_upload(blob_id, 4)
    assert services.downloads.read_all(blob_id) == b"abcd"


def test_sequence_gap_aborts_upload(services):
    uploads = services.uploads
    blob_id = uploads.begin_upload()
    uploads.write_chunk(blob_id, 0, b"abcd")

    with pytest.raises(SequenceError) as exc_info:
        uploads.write_chunk(blob_id, 2, b"efgh")

    assert exc_info.value.expected == 1
    assert exc_info.value.received == 2
    assert services.chunk_store.list_sequences(blob_id) == []
    with pytest.raises(BlobNotFoundError):
        services.registry.get(blob_id)


def test_duplicate_sequence_aborts_upload(services):
    uploads = services.uploads
    blob_id = uploads.begin_upload()
    uploads.write_chunk(blob_id, 0, b"abcd")

    with pytest.raises(SequenceError):
        uploads.write_chunk(blob_id, 0, b"abcd")
    assert services.chunk_store.list_sequences(blob_id) == []


def test_oversize_chunk_is_rejected(services):
    uploads = services.uploads
    blob_id = uploads.begin_upload()

    with pytest.raises(LengthMismatchError):
        uploads.write_chunk(blob_id, 0, b"abcde")
    with pytest.raises(BlobNotFoundError):
        services.registry.get(blob_id)


def test_empty_chunk_is_rejected(services):
    uploads = services.uploads
    blob_id = uploads.begin_upload()
    with pytest.raises(LengthMismatchError):
        uploads.write_chunk(blob_id, 0, b"")


def test_short_middle_chunk_fails_completion(services):
    uploads = services.uploads
    blob_id = uploads.begin_upload()
    uploads.write_chunk(blob_id, 0, b"ab")
    uploads.write_chunk(blob_id, 1, b"cdef")

    with pytest.raises(LengthMismatchError):
        uploads.complete_upload(blob_id, 6)
    assert services.chunk_store.list_sequences(blob_id) == []


def test_wrong_total_length_fails_completion(services):
    uploads = services.uploads
    blob_id = uploads.begin_upload()
    uploads.write_chunk(blob_id, 0, b"abcd")
    uploads.write_chunk(blob_id, 1, b"ef")

    with pytest.raises(LengthMismatchError):
        uploads.complete_upload(blob_id, 7)
    with pytest.raises(BlobNotFoundError):
        services.registry.get(blob_id)
    assert services.chunk_store.list_sequences(blob_id) == []


def test_non_contiguous_chunks_fail_completion(services):
    """Chunks written around the pipeline leave a hole at completion."""
    uploads = services.uploads
    blob_id = uploads.begin_upload()
    services.chunk_store.put(blob_id, 0, b"abcd")
    services.chunk_store.put(blob_id, 2, b"ijkl")

    with pytest.raises(IncompleteSequenceError):
        uploads.complete_upload(blob_id, 8)
    assert services.chunk_store.list_sequences(blob_id) == []


def test_complete_twice_raises_already_finalized(services):
    uploads = services.uploads
    blob_id = uploads.begin_upload()
    uploads.write_chunk(blob_id, 0, b"ab")
    uploads.complete_upload(blob_id, 2)

    with pytest.raises(AlreadyFinalizedError):
        uploads.complete_upload(blob_id, 2)
    with pytest.raises(AlreadyFinalizedError):
        uploads.write_chunk(blob_id, 1, b"cd")
    # The finalized blob is untouched by the rejected calls
    assert services.downloads.read_all(blob_id) == b"ab"


def test_unknown_blob_is_not_found(services):
    with pytest.raises(BlobNotFoundError):
        services.uploads.write_chunk("missing", 0, b"abcd")
    with pytest.raises(BlobNotFoundError):
        services.uploads.complete_upload("missing", 0)


@pytest.mark.parametrize("written", [0, 1, 3])
def test_abort_after_k_chunks_leaves_nothing(services, written):
    uploads = services.uploads
    blob_id = uploads.begin_upload()
    for sequence in range(written):
        uploads.write_chunk(blob_id, sequence, b"abcd")

    assert uploads.abort_upload(blob_id) == written
    assert services.chunk_store.list_sequences(blob_id) == []
    assert blob_id not in services.registry.list_ids()
    # Aborting again is harmless
    assert uploads.abort_upload(blob_id) == 0


def test_abort_of_complete_blob_is_refused(services, upload):
    metadata = upload(b"abcdef")
    with pytest.raises(AlreadyFinalizedError):
        services.uploads.abort_upload(metadata.blob_id)
    assert services.downloads.read_all(metadata.blob_id) == b"abcdef"


def test_stream_failure_mid_upload_aborts(services):
    with pytest.raises(ConnectionResetError):
        services.uploads.upload_stream(FlakyStream(b"a" * 20, fail_after=9), "text/plain")

    assert services.chunk_store.list_blob_ids() == []
    assert services.registry.list_ids() == []


def test_store_failure_mid_upload_aborts(services):
    """A chunk write that fails after earlier chunks landed removes them all."""
    original_put = services.chunk_store.put

    def failing_put(blob_id, sequence, payload):
        if sequence == 2:
            raise StorageError("disk full")
        return original_put(blob_id, sequence, payload)

    with mock.patch.object(services.chunk_store, "put", side_effect=failing_put):
        with pytest.raises(StorageError):
            services.uploads.upload_stream(io.BytesIO(b"x" * 16))

    assert services.chunk_store.list_blob_ids() == []
    assert services.registry.list_ids() == []


def test_failed_cleanup_keeps_original_error(services):
    """The caller sees the rejected chunk, not the cleanup that failed after it."""
    uploads = services.uploads
    blob_id = uploads.begin_upload()
    uploads.write_chunk(blob_id, 0, b"abcd")

    with mock.patch.object(services.chunk_store, "delete_all", side_effect=StorageError("locked")):
        with pytest.raises(SequenceError) as exc_info:
            uploads.write_chunk(blob_id, 5, b"efgh")
    assert exc_info.value.expected == 1
    # The record was removed before the chunk cleanup failed
    assert blob_id not in services.registry.list_ids()


def test_failed_cleanup_on_completion_keeps_original_error(services):
    uploads = services.uploads
    blob_id = uploads.begin_upload()
    uploads.write_chunk(blob_id, 0, b"ab")

    with mock.patch.object(services.chunk_store, "delete_all", side_effect=StorageError("locked")):
        with pytest.raises(LengthMismatchError):
            uploads.complete_upload(blob_id, 3)


@pytest.mark.parametrize(
    "stream",
    [FlakyStream(b"a" * 20, fail_after=9), io.BytesIO(b"x" * 16)],
    ids=["source-fails", "store-fails"],
)
def test_failed_upload_is_aborted_once(services, stream):
    original_put = services.chunk_store.put

    def failing_put(blob_id, sequence, payload):
        if sequence == 2:
            raise StorageError("disk full")
        return original_put(blob_id, sequence, payload)

    with mock.patch.object(services.chunk_store, "put", side_effect=failing_put), \
         mock.patch.object(services.uploads, "abort_upload", wraps=services.uploads.abort_upload) as abort:
        with pytest.raises((ConnectionResetError, StorageError)):
            services.uploads.upload_stream(stream)

    abort.assert_called_once()
    assert services.chunk_store.list_blob_ids() == []
