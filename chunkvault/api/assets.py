"""
@file: assets.py
@description:
Provides API endpoints to manage song assets (one audio blob, one image blob,
title, artist and duration).

Routes:
- GET /assets : list all assets in creation order
- GET /assets/{asset_id} : fetch one asset
- POST /assets : upload an audio file and an image file and create an asset
- DELETE /assets/{asset_id} : delete an asset and both of its blobs

@dependencies:
- FastAPI APIRouter, File and Form for route definitions and multipart parsing.
- chunkvault.services.container for the catalog.
- Pydantic schemas (AssetOut, UploadedFile) for serialization.

@notes:
- Uploaded parts are spooled by Starlette; the catalog then streams each one
  into the chunk store window by window.
- Missing parts or invalid fields are 400, matching what the mobile client expects.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from chunkvault.core.exceptions import (
    CatalogDeletionError,
    ChunkVaultError,
    EntryNotFoundError,
    InvalidEntryError,
    InvalidReferenceError,
)
from chunkvault.core.logger import setup_logger
from chunkvault.schemas.assets import AssetOut, UploadedFile
from chunkvault.services.container import BlobServices, get_services

# Create a component-specific logger
logger = setup_logger("chunkvault.api.assets")

router = APIRouter()


@router.get("/assets", response_model=List[AssetOut], tags=["Assets"])
def list_assets(services: BlobServices = Depends(get_services)) -> List[AssetOut]:
    """
    GET /assets

    Returns every asset in creation order.

    Example Response:
    [
      {
        "id": "0f1c...",
        "title": "Blue in Green",
        "artist": "Miles Davis",
        "imageRef": "blobs/6a9e...",
        "audioRef": "blobs/d41b...",
        "duration": 337.0,
        "createdAt": "2026-10-17T12:00:00+00:00"
      }
    ]
    """
    try:
        return [AssetOut.from_entry(entry) for entry in services.catalog.list_entries()]
    except ChunkVaultError as e:
        logger.error(f"Error listing assets: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error")


@router.get("/assets/{asset_id}", response_model=AssetOut, tags=["Assets"])
def get_asset(asset_id: str, services: BlobServices = Depends(get_services)) -> AssetOut:
    """
    GET /assets/{asset_id}

    Raises:
        HTTPException(404): If the asset does not exist.
    """
    try:
        return AssetOut.from_entry(services.catalog.get_entry(asset_id))
    except EntryNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Asset not found")
    except ChunkVaultError as e:
        logger.error(f"Error reading asset {asset_id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error")


@router.post("/assets", response_model=AssetOut, status_code=status.HTTP_201_CREATED, tags=["Assets"])
def create_asset(
    title: Optional[str] = Form(None),
    artist: Optional[str] = Form(None),
    duration: Optional[str] = Form(None),
    audio: Optional[UploadFile] = File(None),
    image: Optional[UploadFile] = File(None),
    services: BlobServices = Depends(get_services),
) -> AssetOut:
    """
    POST /assets

    Multipart body with exactly one `audio` part and one `image` part, plus
    `title`, `artist` and an optional `duration` in seconds.

    Raises:
        HTTPException(400): A file part is missing or a field is invalid.
        HTTPException(500): Storage failure; nothing is left behind.
    """
    if audio is None or image is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please upload both audio and image files",
        )

    parsed_duration = None
    if duration not in (None, ""):
        try:
            parsed_duration = float(duration)
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="duration must be a number")

    try:
        logger.info(f"Creating asset '{title}' by {artist} ({audio.filename}, {image.filename})")
        entry = services.catalog.create_asset(
            title=title,
            artist=artist,
            audio=UploadedFile.of(audio.file, audio.content_type, audio.filename),
            image=UploadedFile.of(image.file, image.content_type, image.filename),
            duration=parsed_duration,
        )
    except (InvalidEntryError, InvalidReferenceError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ChunkVaultError as e:
        logger.error(f"Storage error creating asset: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Server error: {str(e)}")
    return AssetOut.from_entry(entry)


@router.delete("/assets/{asset_id}", tags=["Assets"])
def delete_asset(asset_id: str, services: BlobServices = Depends(get_services)) -> dict:
    """
    DELETE /assets/{asset_id}

    Deletes the asset and both of its blobs.

    Raises:
        HTTPException(404): If the asset does not exist.
        HTTPException(500): A blob could not be deleted; the asset is kept and
            the detail names the blob, so the call can simply be retried.
    """
    try:
        services.catalog.delete_entry(asset_id)
    except EntryNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Asset not found")
    except CatalogDeletionError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to delete asset files", "blobId": e.blob_id},
        )
    except ChunkVaultError as e:
        logger.error(f"Error deleting asset {asset_id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error")
    return {"message": "Asset deleted successfully", "id": asset_id}
