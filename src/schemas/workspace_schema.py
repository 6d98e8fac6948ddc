# src/schemas/workspace_schema.py
from pydantic import BaseModel
from datetime import datetime


class WorkspaceStatsRead(BaseModel):
    total_posts: int
    scheduled_posts: int
    published_posts: int
    failed_posts: int
    total_media: int
    last_updated: datetime
