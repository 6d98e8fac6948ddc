# src/services/stats_service.py
from typing import Iterable
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from src.models.post import Post, PostStatus
from src.models.media import Media
from src.infrastructure.posts_repo import PostRepository
from src.infrastructure.media_repo import MediaRepository
from src.infrastructure.stats_repo import StatsRepository
from src.utils import utcnow

logger = structlog.get_logger(__name__)


def compute_stats(posts: Iterable[Post], media: Iterable[Media]) -> dict:
    """
    Count an owner's posts per status plus their media.
    """
    counts = {
        "total_posts": 0,
        "scheduled_posts": 0,
        "published_posts": 0,
        "failed_posts": 0,
    }
    for post in posts:
        counts["total_posts"] += 1
        if post.status == PostStatus.SCHEDULED.value:
            counts["scheduled_posts"] += 1
        elif post.status == PostStatus.PUBLISHED.value:
            counts["published_posts"] += 1
        elif post.status == PostStatus.FAILED.value:
            counts["failed_posts"] += 1
    counts["total_media"] = sum(1 for _ in media)
    return counts


class StatsService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = StatsRepository(session)

    async def recompute(self, owner: str):
        posts = await PostRepository(self.session).list_by_owner(owner)
        media = await MediaRepository(self.session).list_by_owner(owner)
        counts = compute_stats(posts, media)
        stats = await self.repo.upsert(owner, counts)
        logger.debug("stats_recomputed", owner=owner, **counts)
        return stats

    async def get_stats(self, owner: str) -> dict:
        stats = await self.repo.get_by_owner(owner)
        if stats is None:
            return {
                "total_posts": 0,
                "scheduled_posts": 0,
                "published_posts": 0,
                "failed_posts": 0,
                "total_media": 0,
                "last_updated": utcnow(),
            }
        return {
            "total_posts": stats.total_posts,
            "scheduled_posts": stats.scheduled_posts,
            "published_posts": stats.published_posts,
            "failed_posts": stats.failed_posts,
            "total_media": stats.total_media,
            "last_updated": stats.last_updated,
        }
