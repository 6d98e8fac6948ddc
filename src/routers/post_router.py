# src/routers/post_router.py
from typing import List, Optional
from datetime import datetime
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.dependencies.db import get_session_dep
from src.dependencies.auth import get_current_owner
from src.infrastructure.timer import TimerService, get_timer_service
from src.infrastructure.blob_store import BlobStore, get_blob_store
from src.models.post import PostStatus
from src.schemas.post_schema import PostCreate, PostUpdate, PostRead, PostDetail
from src.services.post_service import PostService
from src.services.errors import SchedulerError

router = APIRouter(prefix="/posts", tags=["posts"])


def _service(session: AsyncSession, timer: TimerService, blob_store: Optional[BlobStore] = None) -> PostService:
    return PostService(session, timer, blob_store)


@router.post("", response_model=PostRead, status_code=status.HTTP_201_CREATED)
async def create_post(
    payload: PostCreate,
    session: AsyncSession = Depends(get_session_dep),
    timer: TimerService = Depends(get_timer_service),
    owner: str = Depends(get_current_owner),
):
    try:
        return await _service(session, timer).create_post(owner, payload)
    except SchedulerError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))


@router.get("", response_model=List[PostRead])
async def list_posts(
    status: Optional[PostStatus] = None,
    session: AsyncSession = Depends(get_session_dep),
    timer: TimerService = Depends(get_timer_service),
    owner: str = Depends(get_current_owner),
):
    return await _service(session, timer).list_posts(owner, status)


@router.get("/calendar", response_model=List[PostRead])
async def posts_for_range(
    start: datetime,
    end: datetime,
    session: AsyncSession = Depends(get_session_dep),
    timer: TimerService = Depends(get_timer_service),
    owner: str = Depends(get_current_owner),
):
    try:
        return await _service(session, timer).list_posts_in_range(owner, start, end)
    except SchedulerError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))


@router.get("/{post_id}", response_model=PostDetail)
async def get_post(
    post_id: uuid.UUID,
    session: AsyncSession = Depends(get_session_dep),
    timer: TimerService = Depends(get_timer_service),
    blob_store: BlobStore = Depends(get_blob_store),
    owner: str = Depends(get_current_owner),
):
    post = await _service(session, timer, blob_store).get_post(owner, post_id)
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


@router.patch("/{post_id}", response_model=PostRead)
async def update_post(
    post_id: uuid.UUID,
    payload: PostUpdate,
    session: AsyncSession = Depends(get_session_dep),
    timer: TimerService = Depends(get_timer_service),
    owner: str = Depends(get_current_owner),
):
    try:
        return await _service(session, timer).update_post(owner, post_id, payload)
    except SchedulerError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(
    post_id: uuid.UUID,
    session: AsyncSession = Depends(get_session_dep),
    timer: TimerService = Depends(get_timer_service),
    owner: str = Depends(get_current_owner),
):
    try:
        await _service(session, timer).delete_post(owner, post_id)
    except SchedulerError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))
