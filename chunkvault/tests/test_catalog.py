"""
@file: test_catalog.py
@description:
This module contains unit tests for the catalog service including:
- Entry creation against COMPLETE blobs and reference validation
- Creation-ordered listing
- Cascading deletes, including a blob delete that fails part way
- The combined upload-and-create flow with cleanup on failure

@notes:
- Uses the 4-byte chunk size `services` fixture
"""

import io
from unittest import mock

import pytest

from chunkvault.core.exceptions import (
    BlobNotFoundError,
    CatalogDeletionError,
    EntryNotFoundError,
    InvalidEntryError,
    InvalidReferenceError,
    StorageError,
)
from chunkvault.schemas.assets import UploadedFile


@pytest.fixture
def blob_pair(upload):
    """An uploaded audio blob and image blob, not yet in the catalog."""
    audio = upload(b"fake-mp3-data", "audio/mpeg", "song.mp3")
    image = upload(b"fake-png", "image/png", "cover.png")
    return audio, image


def test_create_entry(services, blob_pair):
    audio, image = blob_pair

    entry = services.catalog.create_entry("  Blue in Green ", "Miles Davis", audio.blob_id, image.blob_id, 337)

    assert entry.title == "Blue in Green"
    assert entry.artist == "Miles Davis"
    assert entry.duration == 337.0
    assert entry.blob_ids == (audio.blob_id, image.blob_id)
    assert services.catalog.get_entry(entry.id) == entry
    assert services.catalog.references_blob(audio.blob_id)


@pytest.mark.parametrize(
    "title, artist, duration",
    [("", "Band", None), ("Song", "   ", None), ("Song", "Band", -1), ("Song", "Band", float("nan"))],
)
def test_invalid_fields_rejected(services, blob_pair, title, artist, duration):
    audio, image = blob_pair
    with pytest.raises(InvalidEntryError):
        services.catalog.create_entry(title, artist, audio.blob_id, image.blob_id, duration)
    assert services.catalog.list_entries() == []


def test_unknown_blob_reference_rejected(services, blob_pair):
    audio, _ = blob_pair
    with pytest.raises(InvalidReferenceError):
        services.catalog.create_entry("Song", "Band", audio.blob_id, "no-such-blob")


def test_pending_blob_reference_rejected(services, blob_pair):
    audio, _ = blob_pair
    pending = services.uploads.begin_upload("image/png")
    with pytest.raises(InvalidReferenceError):
        services.catalog.create_entry("Song", "Band", audio.blob_id, pending)


def test_same_blob_for_both_roles_rejected(services, blob_pair):
    audio, _ = blob_pair
    with pytest.raises(InvalidReferenceError):
        services.catalog.create_entry("Song", "Band", audio.blob_id, audio.blob_id)


def test_blob_cannot_belong_to_two_entries(services, blob_pair, upload):
    audio, image = blob_pair
    services.catalog.create_entry("Song", "Band", audio.blob_id, image.blob_id)
    other_image = upload(b"other", "image/png")

    with pytest.raises(InvalidReferenceError):
        services.catalog.create_entry("Cover", "Other Band", audio.blob_id, other_image.blob_id)


def test_list_entries_in_creation_order(services, upload):
    created = []
    for n in range(3):
        audio = upload(f"audio-{n}".encode(), "audio/mpeg")
        image = upload(f"image-{n}".encode(), "image/png")
        created.append(services.catalog.create_entry(f"Song {n}", "Band", audio.blob_id, image.blob_id).id)

    assert [entry.id for entry in services.catalog.list_entries()] == created


def test_get_missing_entry(services):
    with pytest.raises(EntryNotFoundError):
        services.catalog.get_entry("missing")


def test_delete_entry_cascades_to_blobs(services, blob_pair):
    audio, image = blob_pair
    entry = services.catalog.create_entry("Song", "Band", audio.blob_id, image.blob_id)

    removed = services.catalog.delete_entry(entry.id)

    assert removed.id == entry.id
    assert services.catalog.list_entries() == []
    for blob_id in entry.blob_ids:
        assert services.chunk_store.list_sequences(blob_id) == []
        with pytest.raises(BlobNotFoundError):
            services.registry.get(blob_id)
    with pytest.raises(EntryNotFoundError):
        services.catalog.delete_entry(entry.id)


def test_failed_blob_delete_keeps_entry(services, blob_pair):
    audio, image = blob_pair
    entry = services.catalog.create_entry("Song", "Band", audio.blob_id, image.blob_id)
    original_delete = services.deletions.delete_blob

    def failing_delete(blob_id, ignore_references=False):
        if blob_id == image.blob_id:
            raise StorageError("database is locked")
        return original_delete(blob_id, ignore_references=ignore_references)

    with mock.patch.object(services.deletions, "delete_blob", side_effect=failing_delete):
        with pytest.raises(CatalogDeletionError) as exc_info:
            services.catalog.delete_entry(entry.id)

    assert exc_info.value.blob_id == image.blob_id
    assert services.catalog.get_entry(entry.id) == entry
    assert services.downloads.read_all(image.blob_id) == b"fake-png"

    # Retrying picks up where the failed delete stopped
    services.catalog.delete_entry(entry.id)
    assert services.catalog.list_entries() == []
    assert services.chunk_store.list_blob_ids() == []


def test_create_asset_uploads_both_files(services):
    entry = services.catalog.create_asset(
        title="Song",
        artist="Band",
        audio=UploadedFile.of(io.BytesIO(b"0123456789"), "audio/mpeg", "song.mp3"),
        image=UploadedFile.of(io.BytesIO(b"png!"), "image/png", "cover.png"),
        duration=12.5,
    )

    assert services.downloads.read_all(entry.audio_blob_id) == b"0123456789"
    assert services.downloads.read_all(entry.image_blob_id) == b"png!"
    audio = services.registry.get(entry.audio_blob_id)
    assert audio.content_type == "audio/mpeg"
    assert audio.custom_tags == {"title": "Song", "artist": "Band", "role": "audio"}
    assert services.registry.get(entry.image_blob_id).custom_tags["role"] == "image"


def test_create_asset_with_bad_fields_uploads_nothing(services):
    with pytest.raises(InvalidEntryError):
        services.catalog.create_asset(
            title="",
            artist="Band",
            audio=UploadedFile.of(io.BytesIO(b"audio")),
            image=UploadedFile.of(io.BytesIO(b"image")),
        )
    assert services.registry.list_ids() == []


def test_create_asset_failed_image_removes_audio(services):
    class BrokenStream(io.BytesIO):
        def read(self, size=-1):
            raise ConnectionResetError("client disconnected")

    with pytest.raises(ConnectionResetError):
        services.catalog.create_asset(
            title="Song",
            artist="Band",
            audio=UploadedFile.of(io.BytesIO(b"0123456789"), "audio/mpeg"),
            image=UploadedFile.of(BrokenStream(), "image/png"),
        )

    assert services.registry.list_ids() == []
    assert services.chunk_store.list_blob_ids() == []


def test_create_asset_failed_entry_removes_both_blobs(services):
    with mock.patch.object(services.catalog, "create_entry", side_effect=StorageError("locked")):
        with pytest.raises(StorageError):
            services.catalog.create_asset(
                title="Song",
                artist="Band",
                audio=UploadedFile.of(io.BytesIO(b"audio"), "audio/mpeg"),
                image=UploadedFile.of(io.BytesIO(b"image"), "image/png"),
            )

    assert services.registry.list_ids() == []
    assert services.chunk_store.list_blob_ids() == []


def test_blob_deleted_after_checks_rejects_entry(services, blob_pair):
    """A blob removed between the reference checks and the insert leaves no entry behind."""
    audio, image = blob_pair
    original_check = services.catalog._check_reference

    def check_then_lose_image(blob_id):
        original_check(blob_id)
        if blob_id == image.blob_id:
            services.deletions.delete_blob(image.blob_id)

    with mock.patch.object(services.catalog, "_check_reference", side_effect=check_then_lose_image):
        with pytest.raises(InvalidReferenceError) as exc_info:
            services.catalog.create_entry("Song", "Band", audio.blob_id, image.blob_id)

    assert exc_info.value.blob_id == image.blob_id
    assert services.catalog.list_entries() == []
    assert not services.catalog.references_blob(audio.blob_id)
