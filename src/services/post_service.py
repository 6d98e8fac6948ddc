# src/services/post_service.py
from typing import List, Optional
from datetime import datetime
import uuid

from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from src.models.post import Post, PostStatus
from src.infrastructure.posts_repo import PostRepository
from src.infrastructure.media_repo import MediaRepository
from src.infrastructure.timer import TimerService
from src.infrastructure.blob_store import BlobStore
from src.schemas.post_schema import PostCreate, PostUpdate, PostRead, PostDetail
from src.schemas.media_schema import MediaRead
from src.services.errors import Conflict, NotFound, Unauthorized, ValidationError
from src.services.stats_service import StatsService
from src.services import validation
from src.tasks import PUBLISH_TASK
from src.utils import utcnow, to_naive_utc

logger = structlog.get_logger(__name__)


class PostService:
    def __init__(self, session: AsyncSession, timer: TimerService, blob_store: Optional[BlobStore] = None):
        self.session = session
        self.timer = timer
        self.blob_store = blob_store
        self.posts = PostRepository(session)
        self.stats = StatsService(session)

    async def _arm(self, post_id: uuid.UUID, scheduled_at: datetime, now: datetime) -> str:
        delay = (scheduled_at - now).total_seconds()
        return await self.timer.schedule(delay, PUBLISH_TASK, {"post_id": str(post_id)})

    async def _get_owned(self, owner: str, post_id: uuid.UUID) -> Post:
        post = await self.posts.get_by_id(post_id)
        if not post:
            raise NotFound("Post not found")
        if post.owner != owner:
            logger.warning("post_access_denied", post_id=str(post_id), owner=owner)
            raise Unauthorized("Unauthorized to modify this post")
        return post

    async def create_post(self, owner: str, payload: PostCreate) -> Post:
        now = utcnow()
        content = validation.validate_content(payload.content)
        platforms = validation.validate_platforms(payload.platforms)
        scheduled_at = validation.validate_scheduled_at(payload.scheduled_at, now)
        media_refs = await validation.validate_media_refs(self.session, owner, payload.media_refs)

        post = Post(
            owner=owner,
            content=content,
            media_refs=media_refs,
            platforms=platforms,
            scheduled_at=scheduled_at,
            status=PostStatus.SCHEDULED.value,
            created_at=now,
            updated_at=now,
        )
        # the row exists before the timer can fire, so a near-term publish always finds it
        post = await self.posts.create(post)
        try:
            handle = await self._arm(post.id, scheduled_at, utcnow())
        except Exception:
            await self.posts.delete(post)
            raise
        armed = await self.posts.conditional_update(post.id, PostStatus.SCHEDULED.value, pending_task_handle=handle)
        if armed is None:
            # fired and claimed before the handle was recorded
            await self.session.refresh(post)
        else:
            post = armed

        await self.stats.recompute(owner)
        logger.info("post_created", post_id=str(post.id), owner=owner, platforms=platforms, scheduled_at=scheduled_at.isoformat())
        return post

    async def update_post(self, owner: str, post_id: uuid.UUID, payload: PostUpdate) -> Post:
        post = await self._get_owned(owner, post_id)
        if post.status != PostStatus.SCHEDULED.value:
            raise Conflict("Can only update scheduled posts")

        fields = payload.provided()
        changes = {}
        if "content" in fields:
            changes["content"] = validation.validate_content(fields["content"])
        if "platforms" in fields:
            changes["platforms"] = validation.validate_platforms(fields["platforms"])
        if "media_refs" in fields:
            if fields["media_refs"] is None:
                raise ValidationError("media_refs cannot be null")
            changes["media_refs"] = await validation.validate_media_refs(self.session, owner, fields["media_refs"])
        new_scheduled_at = None
        if "scheduled_at" in fields:
            new_scheduled_at = validation.validate_scheduled_at(fields["scheduled_at"])

        if new_scheduled_at is not None:
            old_handle = post.pending_task_handle
            if old_handle:
                await self.timer.cancel(old_handle)
            changes["scheduled_at"] = new_scheduled_at
            changes["pending_task_handle"] = await self._arm(post.id, new_scheduled_at, utcnow())

        updated = await self.posts.conditional_update(post.id, PostStatus.SCHEDULED.value, **changes)
        if updated is None:
            # publish claimed the post between our read and write
            if new_scheduled_at is not None:
                await self.timer.cancel(changes["pending_task_handle"])
            raise Conflict("Can only update scheduled posts")

        logger.info("post_updated", post_id=str(post_id), owner=owner, fields=sorted(fields), rescheduled=new_scheduled_at is not None)
        return updated

    async def delete_post(self, owner: str, post_id: uuid.UUID) -> None:
        post = await self._get_owned(owner, post_id)
        if post.status == PostStatus.SCHEDULED.value and post.pending_task_handle:
            await self.timer.cancel(post.pending_task_handle)
        await self.posts.delete(post)
        await self.stats.recompute(owner)
        logger.info("post_deleted", post_id=str(post_id), owner=owner, status=post.status)

    async def get_post(self, owner: str, post_id: uuid.UUID) -> Optional[PostDetail]:
        """
        The post with its media resolved to current URLs; None for missing or foreign posts.
        """
        post = await self.posts.get_by_id(post_id)
        if not post or post.owner != owner:
            return None

        media_repo = MediaRepository(self.session)
        media: List[MediaRead] = []
        for ref in post.media_refs:
            item = await media_repo.get_by_id(uuid.UUID(ref))
            if item is None or item.owner != owner:
                continue
            url = await self.blob_store.get_url(item.storage_ref) if self.blob_store else None
            media.append(MediaRead.model_validate(item).model_copy(update={"url": url}))

        return PostDetail(**PostRead.model_validate(post).model_dump(), media=media)

    async def list_posts(self, owner: str, status: Optional[PostStatus] = None) -> List[Post]:
        return await self.posts.list_by_owner(owner, status.value if status else None)

    async def list_posts_in_range(self, owner: str, start: datetime, end: datetime) -> List[Post]:
        start, end = to_naive_utc(start), to_naive_utc(end)
        if end < start:
            raise ValidationError("end must not be before start")
        return await self.posts.list_by_owner_in_range(owner, start, end)
