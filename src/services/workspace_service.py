# src/services/workspace_service.py
from typing import List

from sqlmodel.ext.asyncio.session import AsyncSession

from src.models.post import Post, TERMINAL_STATUSES
from src.infrastructure.posts_repo import PostRepository
from src.services.stats_service import StatsService
from src.utils import utcnow


class WorkspaceService:
    """Read-only dashboard queries."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.posts = PostRepository(session)

    async def get_stats(self, owner: str) -> dict:
        return await StatsService(self.session).get_stats(owner)

    async def upcoming_posts(self, owner: str, limit: int = 5) -> List[Post]:
        return await self.posts.list_upcoming(owner, utcnow(), limit)

    async def recent_activity(self, owner: str, limit: int = 10) -> List[Post]:
        # the window is the latest `limit` posts, finished ones are picked from it
        recent = await self.posts.list_recent(owner, limit)
        return [post for post in recent if post.status in TERMINAL_STATUSES]
