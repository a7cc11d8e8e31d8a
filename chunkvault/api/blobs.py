"""
@file: blobs.py
@description:
Provides API endpoints to stream and delete individual blobs.

Routes:
- GET /blobs/{blob_id} : stream a COMPLETE blob, optionally a byte range
- DELETE /blobs/{blob_id} : delete a blob that no catalog entry owns

@dependencies:
- FastAPI APIRouter for route definitions.
- chunkvault.services.container for the download pipeline and deletion coordinator.
- chunkvault.core.logger for logging.

@notes:
- 404 and 416 are decided before the response starts. An error raised while
  the body is streaming (corruption, or a concurrent delete) can only abort
  the connection, since the status line is already sent.
"""

import re
import uuid
from typing import Iterator, Optional, Tuple

from fastapi import APIRouter, Depends, Header, HTTPException, status
from fastapi.responses import StreamingResponse

from chunkvault.core.exceptions import (
    BlobInUseError,
    ChunkVaultError,
    NotFoundError,
    RangeNotSatisfiableError,
    StorageError,
)
from chunkvault.core.logger import setup_logger
from chunkvault.services.container import BlobServices, get_services
from chunkvault.services.download_pipeline import BlobStream

# Create a component-specific logger
logger = setup_logger("chunkvault.api.blobs")

router = APIRouter()

_RANGE_PATTERN = re.compile(r"^bytes=(\d*)-(\d*)$")


def parse_blob_id(blob_id: str) -> str:
    """
    Validate a blob id and return its canonical form.

    Raises:
        HTTPException(400): If the id is not a well-formed UUID.
    """
    try:
        return str(uuid.UUID(blob_id))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid blob ID")


def parse_range_header(value: Optional[str]) -> Tuple[Optional[int], Optional[int]]:
    """
    Parse a single-range ``Range: bytes=start-end`` header.

    Multiple ranges, unknown units and ranges whose end precedes their start
    are ignored (the full body is served), as HTTP allows.
    """
    if not value:
        return None, None
    match = _RANGE_PATTERN.match(value.strip())
    if match is None or match.group(1) == match.group(2) == "":
        return None, None
    start = int(match.group(1)) if match.group(1) else None
    end = int(match.group(2)) if match.group(2) else None
    if start is not None and end is not None and end < start:
        return None, None
    return start, end


def _stream_body(stream: BlobStream) -> Iterator[bytes]:
    """Yield the blob's chunks, logging an error that interrupts the transfer."""
    try:
        for payload in stream:
            yield payload
    except ChunkVaultError as e:
        logger.error(f"Aborting transfer of blob {stream.metadata.blob_id} mid-stream: {str(e)}")
        raise
    finally:
        stream.close()


@router.get("/blobs/{blob_id}", tags=["Blobs"])
def get_blob(
    blob_id: str,
    range_header: Optional[str] = Header(None, alias="Range"),
    services: BlobServices = Depends(get_services),
) -> StreamingResponse:
    """
    GET /blobs/{blob_id}

    Streams the blob body with the Content-Type recorded at upload time.

    Raises:
        HTTPException(400): Malformed blob id.
        HTTPException(404): Unknown or not yet COMPLETE blob.
        HTTPException(416): Range outside the blob.
        HTTPException(500): Storage failure before streaming starts.
    """
    blob_id = parse_blob_id(blob_id)
    start, end = parse_range_header(range_header)
    try:
        stream = services.downloads.open_read(blob_id, start, end)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    except RangeNotSatisfiableError as e:
        raise HTTPException(
            status_code=status.HTTP_416_RANGE_NOT_SATISFIABLE,
            detail=str(e),
            headers={"Content-Range": f"bytes */{e.length}"},
        )
    except StorageError as e:
        logger.error(f"Storage error opening blob {blob_id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error")

    metadata = stream.metadata
    headers = {
        "Content-Length": str(stream.content_length),
        "Accept-Ranges": "bytes",
    }
    status_code = status.HTTP_200_OK
    if stream.partial:
        status_code = status.HTTP_206_PARTIAL_CONTENT
        headers["Content-Range"] = f"bytes {stream.start}-{stream.end}/{metadata.length}"

    logger.debug(f"Streaming blob {blob_id} ({stream.content_length} bytes)")
    return StreamingResponse(
        _stream_body(stream),
        status_code=status_code,
        media_type=metadata.content_type,
        headers=headers,
    )


@router.delete("/blobs/{blob_id}", tags=["Blobs"])
def delete_blob(
    blob_id: str,
    services: BlobServices = Depends(get_services),
) -> dict:
    """
    DELETE /blobs/{blob_id}

    Deletes a blob that is not part of a catalog entry. Repeating the call is
    not an error.

    Raises:
        HTTPException(400): Malformed blob id.
        HTTPException(409): A catalog entry owns the blob.
        HTTPException(500): Storage failure.
    """
    blob_id = parse_blob_id(blob_id)
    try:
        result = services.deletions.delete_blob(blob_id)
    except BlobInUseError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except StorageError as e:
        logger.error(f"Storage error deleting blob {blob_id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return {
        "message": "Blob deleted successfully",
        "id": blob_id,
        "chunksRemoved": result.chunks_removed,
    }
