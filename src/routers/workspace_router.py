# src/routers/workspace_router.py
from typing import List
from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from src.dependencies.db import get_session_dep
from src.dependencies.auth import get_current_owner
from src.schemas.post_schema import PostRead
from src.schemas.workspace_schema import WorkspaceStatsRead
from src.services.workspace_service import WorkspaceService

router = APIRouter(prefix="/workspace", tags=["workspace"])


@router.get("/stats", response_model=WorkspaceStatsRead)
async def get_stats(session: AsyncSession = Depends(get_session_dep), owner: str = Depends(get_current_owner)):
    return await WorkspaceService(session).get_stats(owner)


@router.get("/upcoming", response_model=List[PostRead])
async def upcoming_posts(session: AsyncSession = Depends(get_session_dep), owner: str = Depends(get_current_owner)):
    return await WorkspaceService(session).upcoming_posts(owner)


@router.get("/activity", response_model=List[PostRead])
async def recent_activity(session: AsyncSession = Depends(get_session_dep), owner: str = Depends(get_current_owner)):
    return await WorkspaceService(session).recent_activity(owner)
