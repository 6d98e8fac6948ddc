# src/schemas/media_schema.py
from pydantic import BaseModel, ConfigDict
from typing import Optional
import uuid
from datetime import datetime

from src.models.media import MediaType


class MediaCreate(BaseModel):
    storage_ref: str
    file_name: str
    file_type: MediaType
    mime_type: str
    size: int


class MediaRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    owner: str
    file_name: str
    file_type: MediaType
    mime_type: str
    size: int
    storage_ref: str
    uploaded_at: datetime
    url: Optional[str] = None


class UploadUrl(BaseModel):
    upload_url: str


class UploadResult(BaseModel):
    storage_ref: str
