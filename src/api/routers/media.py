"""Media library routes for the reelsmith API."""

import asyncio
import logging
import shutil
import tempfile
from pathlib import Path

from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from api.dependencies import get_media_library, get_record_store
from api.schemas import MediaItemResponse, MediaItemUpdate, MediaListResponse, MessageResponse
from models.generation import Orientation
from services.media_library import MediaLibraryError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Media Library"])


@router.get("/api/media", summary="List media items", response_model=MediaListResponse)
async def list_media(orientation: Orientation | None = None, limit: int = 100) -> MediaListResponse:
    items = await get_record_store().list_media_items(orientation=orientation, limit=limit)
    return MediaListResponse(items=[MediaItemResponse.from_item(item) for item in reversed(items)])


@router.get("/api/media/{item_id}", summary="Get media item", response_model=MediaItemResponse)
async def get_media(item_id: int) -> MediaItemResponse:
    item = await get_record_store().get_media_item(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Media item not found")
    return MediaItemResponse.from_item(item)


@router.post(
    "/api/media/upload",
    summary="Upload a clip to the media library",
    status_code=201,
    response_model=MediaItemResponse,
)
async def upload_media(
    file: UploadFile = File(...),
    title: str | None = Form(None),
) -> MediaItemResponse:
    """Store an uploaded clip and describe it with AI frame analysis."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")

    upload_dir = Path(tempfile.mkdtemp(prefix="upload_"))
    temp_path = upload_dir / Path(file.filename).name
    try:
        with temp_path.open("wb") as f:
            await asyncio.to_thread(shutil.copyfileobj, file.file, f)

        item = await get_media_library().ingest(
            temp_path,
            original_name=file.filename,
            mime_type=file.content_type,
            title=title,
        )
    except MediaLibraryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    finally:
        shutil.rmtree(upload_dir, ignore_errors=True)

    return MediaItemResponse.from_item(item)


@router.patch("/api/media/{item_id}", summary="Edit media item", response_model=MediaItemResponse)
async def update_media(item_id: int, update: MediaItemUpdate) -> MediaItemResponse:
    try:
        item = await get_media_library().update_item(item_id, **update.model_dump(exclude_none=True))
    except MediaLibraryError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return MediaItemResponse.from_item(item)


@router.delete("/api/media/{item_id}", summary="Delete media item", response_model=MessageResponse)
async def delete_media(item_id: int) -> MessageResponse:
    try:
        await get_media_library().delete_item(item_id)
    except MediaLibraryError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return MessageResponse(message=f"Media item {item_id} deleted")
