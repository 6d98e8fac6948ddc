# src/routers/media_router.py
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import FileResponse
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from src.dependencies.db import get_session_dep
from src.dependencies.auth import get_current_owner
from src.infrastructure.blob_store import BlobStore, BlobStoreError, get_blob_store
from src.infrastructure.media_repo import MediaRepository
from src.models.media import MediaType
from src.schemas.media_schema import MediaCreate, MediaRead, UploadUrl, UploadResult
from src.services.media_service import MediaService
from src.services.errors import SchedulerError

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/media", tags=["media"])


@router.post("/upload-url", response_model=UploadUrl)
async def generate_upload_url(
    session: AsyncSession = Depends(get_session_dep),
    blob_store: BlobStore = Depends(get_blob_store),
    owner: str = Depends(get_current_owner),
):
    url = await MediaService(session, blob_store).generate_upload_url(owner)
    return {"upload_url": url}


@router.post("/upload/{token}", response_model=UploadResult, status_code=status.HTTP_201_CREATED)
async def upload(token: str, request: Request, blob_store: BlobStore = Depends(get_blob_store)):
    """
    Target of a generated upload URL. The signed token authorizes the upload,
    the request body is the raw file.
    """
    data = await request.body()
    try:
        storage_ref = await blob_store.store_upload(token, data)
    except BlobStoreError as exc:
        logger.info("upload_rejected", reason=str(exc))
        raise HTTPException(status_code=400, detail=str(exc))
    return {"storage_ref": storage_ref}


@router.get("/files/{storage_ref}")
async def serve_file(
    storage_ref: str,
    session: AsyncSession = Depends(get_session_dep),
    blob_store: BlobStore = Depends(get_blob_store),
):
    path = blob_store.local_path(storage_ref)
    if path is None:
        raise HTTPException(status_code=404, detail="File not found")
    media = await MediaRepository(session).get_by_storage_ref(storage_ref)
    media_type = media.mime_type if media else "application/octet-stream"
    return FileResponse(path, media_type=media_type)


@router.post("", response_model=MediaRead, status_code=status.HTTP_201_CREATED)
async def save_media(
    payload: MediaCreate,
    session: AsyncSession = Depends(get_session_dep),
    blob_store: BlobStore = Depends(get_blob_store),
    owner: str = Depends(get_current_owner),
):
    try:
        return await MediaService(session, blob_store).save_media(owner, payload)
    except SchedulerError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))


@router.get("", response_model=List[MediaRead])
async def list_media(
    file_type: Optional[MediaType] = None,
    session: AsyncSession = Depends(get_session_dep),
    blob_store: BlobStore = Depends(get_blob_store),
    owner: str = Depends(get_current_owner),
):
    return await MediaService(session, blob_store).list_media(owner, file_type)


@router.get("/{media_id}", response_model=MediaRead)
async def get_media(
    media_id: uuid.UUID,
    session: AsyncSession = Depends(get_session_dep),
    blob_store: BlobStore = Depends(get_blob_store),
    owner: str = Depends(get_current_owner),
):
    media = await MediaService(session, blob_store).get_media(owner, media_id)
    if media is None:
        raise HTTPException(status_code=404, detail="Media not found")
    return media


@router.delete("/{media_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_media(
    media_id: uuid.UUID,
    session: AsyncSession = Depends(get_session_dep),
    blob_store: BlobStore = Depends(get_blob_store),
    owner: str = Depends(get_current_owner),
):
    try:
        await MediaService(session, blob_store).delete_media(owner, media_id)
    except SchedulerError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))
