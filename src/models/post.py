# src/models/post.py
from sqlmodel import SQLModel, Field, Column
from typing import Optional, List
from enum import Enum
import uuid
from datetime import datetime
from sqlalchemy import String, JSON, DateTime

from src.utils import utcnow


class Platform(str, Enum):
    TWITTER = "twitter"
    LINKEDIN = "linkedin"
    BLUESKY = "bluesky"
    THREADS = "threads"


class PostStatus(str, Enum):
    SCHEDULED = "scheduled"
    PUBLISHING = "publishing"
    PUBLISHED = "published"
    FAILED = "failed"


# posts in these states still hold on to their media
ACTIVE_STATUSES = (PostStatus.SCHEDULED.value, PostStatus.PUBLISHING.value)
TERMINAL_STATUSES = (PostStatus.PUBLISHED.value, PostStatus.FAILED.value)


class Post(SQLModel, table=True):
    __tablename__ = "scheduled_post"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    owner: str = Field(sa_column=Column(String, index=True, nullable=False))
    content: str
    media_refs: List[str] = Field(sa_column=Column(JSON, nullable=False), default_factory=list)
    platforms: List[str] = Field(sa_column=Column(JSON, nullable=False), default_factory=list)
    scheduled_at: datetime = Field(sa_column=Column(DateTime, index=True, nullable=False))
    status: str = Field(default=PostStatus.SCHEDULED.value, index=True)  # scheduled, publishing, published, failed
    error: Optional[str] = Field(default=None)
    published_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    pending_task_handle: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
