# src/models/workspace_stats.py
from sqlmodel import SQLModel, Field, Column
from typing import Optional
from datetime import datetime
import uuid
from sqlalchemy import String, DateTime

from src.utils import utcnow


class WorkspaceStats(SQLModel, table=True):
    __tablename__ = "workspace_stats"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    owner: str = Field(sa_column=Column(String, unique=True, index=True, nullable=False))
    total_posts: int = Field(default=0)
    scheduled_posts: int = Field(default=0)
    published_posts: int = Field(default=0)
    failed_posts: int = Field(default=0)
    total_media: int = Field(default=0)
    last_updated: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
