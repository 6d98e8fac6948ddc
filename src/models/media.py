# src/models/media.py
from sqlmodel import SQLModel, Field, Column
from enum import Enum
from datetime import datetime
import uuid
from sqlalchemy import String, DateTime

from src.utils import utcnow


class MediaType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


MAX_IMAGE_SIZE = 10 * 1024 * 1024
MAX_VIDEO_SIZE = 100 * 1024 * 1024

MAX_SIZE_BY_TYPE = {
    MediaType.IMAGE.value: MAX_IMAGE_SIZE,
    MediaType.VIDEO.value: MAX_VIDEO_SIZE,
}


class Media(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    owner: str = Field(sa_column=Column(String, index=True, nullable=False))
    file_name: str
    file_type: str = Field(index=True)  # image, video
    mime_type: str
    size: int
    storage_ref: str = Field(sa_column=Column(String, unique=True, nullable=False))
    uploaded_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
