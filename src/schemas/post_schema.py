# src/schemas/post_schema.py
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
import uuid
from datetime import datetime

from src.models.post import Platform, PostStatus
from src.schemas.media_schema import MediaRead


class PostCreate(BaseModel):
    content: str
    media_refs: List[uuid.UUID] = Field(default_factory=list)
    platforms: List[Platform]
    scheduled_at: datetime


class PostUpdate(BaseModel):
    """
    Partial update. A field is applied only when the caller sent it;
    model_fields_set tells present from absent.
    """
    content: Optional[str] = None
    media_refs: Optional[List[uuid.UUID]] = None
    platforms: Optional[List[Platform]] = None
    scheduled_at: Optional[datetime] = None

    def provided(self) -> dict:
        return {name: getattr(self, name) for name in self.model_fields_set}


class PostRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    owner: str
    content: str
    media_refs: List[str]
    platforms: List[str]
    scheduled_at: datetime
    status: PostStatus
    error: Optional[str] = None
    published_at: Optional[datetime] = None
    pending_task_handle: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PostDetail(PostRead):
    media: List[MediaRead] = Field(default_factory=list)
