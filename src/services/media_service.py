# src/services/media_service.py
from typing import List, Optional
import uuid

from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from src.models.media import Media, MediaType
from src.models.post import ACTIVE_STATUSES
from src.infrastructure.media_repo import MediaRepository
from src.infrastructure.posts_repo import PostRepository
from src.infrastructure.blob_store import BlobStore
from src.schemas.media_schema import MediaCreate, MediaRead
from src.services.errors import Conflict, NotFound, Unauthorized, ValidationError
from src.services.stats_service import StatsService
from src.services.validation import validate_media_upload

logger = structlog.get_logger(__name__)


class MediaService:
    def __init__(self, session: AsyncSession, blob_store: BlobStore):
        self.session = session
        self.blob_store = blob_store
        self.repo = MediaRepository(session)
        self.stats = StatsService(session)

    async def _with_url(self, media: Media) -> MediaRead:
        url = await self.blob_store.get_url(media.storage_ref)
        return MediaRead.model_validate(media).model_copy(update={"url": url})

    async def generate_upload_url(self, owner: str) -> str:
        return await self.blob_store.generate_upload_url(owner)

    async def save_media(self, owner: str, payload: MediaCreate) -> MediaRead:
        file_type = payload.file_type.value if isinstance(payload.file_type, MediaType) else payload.file_type
        validate_media_upload(file_type, payload.mime_type, payload.size)
        if await self.blob_store.get_url(payload.storage_ref) is None:
            raise NotFound("Uploaded file not found")
        if await self.repo.get_by_storage_ref(payload.storage_ref) is not None:
            raise ValidationError("Uploaded file is already registered")

        media = Media(
            owner=owner,
            storage_ref=payload.storage_ref,
            file_name=payload.file_name,
            file_type=file_type,
            mime_type=payload.mime_type,
            size=payload.size,
        )
        media = await self.repo.create(media)
        await self.stats.recompute(owner)
        logger.info("media_saved", media_id=str(media.id), owner=owner, file_type=file_type, size=payload.size)
        return await self._with_url(media)

    async def delete_media(self, owner: str, media_id: uuid.UUID) -> None:
        media = await self.repo.get_by_id(media_id)
        if not media:
            raise NotFound("Media not found")
        if media.owner != owner:
            logger.warning("media_access_denied", media_id=str(media_id), owner=owner)
            raise Unauthorized("Unauthorized to delete this media")

        active_posts = await PostRepository(self.session).list_by_owner(owner)
        ref = str(media_id)
        if any(post.status in ACTIVE_STATUSES and ref in post.media_refs for post in active_posts):
            raise Conflict("Cannot delete media that is used in scheduled posts")

        storage_ref = media.storage_ref
        await self.repo.delete(media)
        await self.blob_store.delete(storage_ref)
        await self.stats.recompute(owner)
        logger.info("media_deleted", media_id=str(media_id), owner=owner)

    async def list_media(self, owner: str, file_type: Optional[MediaType] = None) -> List[MediaRead]:
        items = await self.repo.list_by_owner(owner, file_type.value if file_type else None)
        return [await self._with_url(item) for item in items]

    async def get_media(self, owner: str, media_id: uuid.UUID) -> Optional[MediaRead]:
        media = await self.repo.get_by_id(media_id)
        if not media or media.owner != owner:
            return None
        return await self._with_url(media)
