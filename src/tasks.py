# src/tasks.py
"""
Work that runs when a timer fires rather than on behalf of a request.

publish_post has no caller to report to: every outcome ends up on the post
row (published, or failed with an error message) and in the logs.
"""
import asyncio
import uuid
from typing import List, Optional

import structlog

from src.models.post import Post, PostStatus
from src.infrastructure.database import get_session
from src.infrastructure.posts_repo import PostRepository
from src.infrastructure.media_repo import MediaRepository
from src.infrastructure.blob_store import BlobStore, get_blob_store
from src.infrastructure.publishing_client import PublishingClient, get_publishing_client
from src.infrastructure.timer import TimerService
from src.services.stats_service import StatsService
from src.utils import utcnow

logger = structlog.get_logger(__name__)

PUBLISH_TASK = "publish_post"
INTERRUPTED_ERROR = "Publishing was interrupted"


async def refresh_stats(session_factory, owner: str) -> None:
    """
    Recompute the owner's counters in a session of its own. Stats are a cache:
    a failure here is logged and must never keep a post from reaching its final status.
    """
    try:
        async with session_factory() as session:
            await StatsService(session).recompute(owner)
    except Exception as e:
        logger.exception("stats_refresh_failed", owner=owner, error=str(e))


async def resolve_media_urls(session, post: Post, blob_store: BlobStore) -> List[str]:
    """
    Current URLs for the post's media, in ref order. Refs that no longer resolve are dropped.
    """
    repo = MediaRepository(session)
    storage_refs = []
    for ref in post.media_refs:
        media = await repo.get_by_id(uuid.UUID(ref))
        if media is None or media.owner != post.owner:
            logger.warning("publish_media_missing", post_id=str(post.id), media_id=ref)
            continue
        storage_refs.append(media.storage_ref)

    urls = await asyncio.gather(*(blob_store.get_url(ref) for ref in storage_refs))
    return [url for url in urls if url]


async def deliver(publisher: PublishingClient, post: Post, media_urls: List[str]) -> List[str]:
    """
    Publish to every platform at once and wait for all of them.
    Returns the error messages of the platforms that failed.
    """
    results = await asyncio.gather(
        *(publisher.publish(platform, post.content, media_urls) for platform in post.platforms),
        return_exceptions=True,
    )
    failures = []
    for platform, result in zip(post.platforms, results):
        if isinstance(result, BaseException):
            message = str(result) or "Unknown error"
            logger.warning("platform_publish_failed", post_id=str(post.id), platform=platform, error=message)
            failures.append(message)
    return failures


async def publish_post(
    post_id,
    session_factory=None,
    publisher: Optional[PublishingClient] = None,
    blob_store: Optional[BlobStore] = None,
) -> Optional[Post]:
    session_factory = session_factory or get_session
    publisher = publisher or get_publishing_client()
    blob_store = blob_store or get_blob_store()
    post_id = uuid.UUID(str(post_id))

    async with session_factory() as session:
        posts = PostRepository(session)

        # claiming scheduled -> publishing also makes a repeated firing a no-op
        post = await posts.conditional_update(
            post_id,
            PostStatus.SCHEDULED.value,
            status=PostStatus.PUBLISHING.value,
            pending_task_handle=None,
        )
        if post is None:
            logger.info("publish_skipped", post_id=str(post_id), reason="post missing or not scheduled")
            return None
        owner = post.owner
        logger.info("publish_started", post_id=str(post_id), owner=owner, platforms=post.platforms)

        try:
            await refresh_stats(session_factory, owner)
            media_urls = await resolve_media_urls(session, post, blob_store)
            failures = await deliver(publisher, post, media_urls)
        except Exception as e:
            logger.exception("publish_crashed", post_id=str(post_id), error=str(e))
            await session.rollback()
            failures = [str(e) or "Unknown error"]

        if failures:
            final = await posts.conditional_update(
                post_id,
                PostStatus.PUBLISHING.value,
                status=PostStatus.FAILED.value,
                error="; ".join(failures),
            )
        else:
            final = await posts.conditional_update(
                post_id,
                PostStatus.PUBLISHING.value,
                status=PostStatus.PUBLISHED.value,
                published_at=utcnow(),
                error=None,
            )

        await refresh_stats(session_factory, owner)
        if final is None:
            # deleted while we were publishing
            logger.info("publish_result_dropped", post_id=str(post_id), failed=bool(failures))
            return None

        if failures:
            logger.warning("publish_failed", post_id=str(post_id), error=final.error)
        else:
            logger.info("publish_succeeded", post_id=str(post_id), published_at=final.published_at.isoformat())
        return final


async def recover_posts(timer: TimerService, session_factory=None) -> dict:
    """
    Run once at startup. Posts left in publishing by a dead process become failed.
    Scheduled posts whose handle the timer no longer holds get a fresh one: every
    post with the in-memory backend, and posts whose Redis handle was claimed by a
    poller that died before publishing started.
    """
    session_factory = session_factory or get_session
    interrupted = 0
    rearmed = 0
    owners = set()

    async with session_factory() as session:
        posts = PostRepository(session)

        for post in await posts.list_by_status([PostStatus.PUBLISHING.value]):
            updated = await posts.conditional_update(
                post.id,
                PostStatus.PUBLISHING.value,
                status=PostStatus.FAILED.value,
                error=INTERRUPTED_ERROR,
            )
            if updated is not None:
                interrupted += 1
                owners.add(updated.owner)

        now = utcnow()
        for post in await posts.list_by_status([PostStatus.SCHEDULED.value]):
            if post.pending_task_handle and await timer.is_pending(post.pending_task_handle):
                continue
            delay = max(0.0, (post.scheduled_at - now).total_seconds())
            handle = await timer.schedule(delay, PUBLISH_TASK, {"post_id": str(post.id)})
            updated = await posts.conditional_update(post.id, PostStatus.SCHEDULED.value, pending_task_handle=handle)
            if updated is None:
                await timer.cancel(handle)
                continue
            rearmed += 1

        for owner in owners:
            await refresh_stats(session_factory, owner)

    logger.info("posts_recovered", interrupted=interrupted, rearmed=rearmed, durable=timer.is_durable)
    return {"interrupted": interrupted, "rearmed": rearmed}


def register_tasks(timer: TimerService) -> None:
    timer.register(PUBLISH_TASK, publish_post)
