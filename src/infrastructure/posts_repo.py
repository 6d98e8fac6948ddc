# src/infrastructure/posts_repo.py
from typing import Optional, List, Sequence
from datetime import datetime
import uuid

from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select
from sqlalchemy import update

from src.models.post import Post, PostStatus
from src.utils import utcnow


class PostRepository:
    """
    Repository for Post entity.
    All methods are async and expect an AsyncSession to be injected from the outside.
    Methods that end in a write commit on their own.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, post: Post) -> Post:
        self.session.add(post)
        await self.session.commit()
        await self.session.refresh(post)
        return post

    async def get_by_id(self, id: uuid.UUID) -> Optional[Post]:
        q = select(Post).where(Post.id == id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_by_owner(self, owner: str, status: Optional[str] = None) -> List[Post]:
        q = select(Post).where(Post.owner == owner)
        if status is not None:
            q = q.where(Post.status == status)
        q = q.order_by(Post.created_at.desc())
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def list_by_owner_in_range(self, owner: str, start: datetime, end: datetime) -> List[Post]:
        q = select(Post).where(
            Post.owner == owner,
            Post.scheduled_at >= start,
            Post.scheduled_at <= end,
        ).order_by(Post.scheduled_at)
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def list_upcoming(self, owner: str, now: datetime, limit: int) -> List[Post]:
        q = select(Post).where(
            Post.owner == owner,
            Post.status == PostStatus.SCHEDULED.value,
            Post.scheduled_at >= now,
        ).order_by(Post.scheduled_at).limit(limit)
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def list_recent(self, owner: str, limit: int) -> List[Post]:
        q = select(Post).where(Post.owner == owner).order_by(Post.created_at.desc()).limit(limit)
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def list_by_status(self, statuses: Sequence[str]) -> List[Post]:
        q = select(Post).where(Post.status.in_(statuses))
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def conditional_update(self, id: uuid.UUID, expected_status: str, **values) -> Optional[Post]:
        """
        Patch a post with a single UPDATE that only matches while it is in expected_status.
        This is the only way status changes, so concurrent writers cannot both win.
        Returns the refreshed post, or None when the post is gone or has moved on.
        """
        q = (
            update(Post)
            .where(Post.id == id, Post.status == expected_status)
            .values(updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        res = await self.session.execute(q)
        await self.session.commit()
        if res.rowcount != 1:
            return None
        post = await self.session.get(Post, id, populate_existing=True)
        return post

    async def delete(self, post: Post) -> None:
        await self.session.delete(post)
        await self.session.commit()
