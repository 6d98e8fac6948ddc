# src/routers/user_router.py
from fastapi import APIRouter, Depends
from src.dependencies.auth import get_current_owner

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me")
async def me(owner: str = Depends(get_current_owner)):
    return {"id": owner}
