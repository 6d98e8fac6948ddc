# src/services/validation.py
"""
Checks shared by post creation and update, and by media upload.
Every function raises ValidationError and never writes.
"""
from typing import Iterable, List, Optional
from datetime import datetime
import uuid

from sqlmodel.ext.asyncio.session import AsyncSession

from src.models.post import Platform
from src.models.media import MediaType, MAX_SIZE_BY_TYPE
from src.infrastructure.media_repo import MediaRepository
from src.services.errors import ValidationError
from src.utils import utcnow, to_naive_utc

MAX_CONTENT_LENGTH = 5000

_PLATFORM_VALUES = {p.value for p in Platform}
_MEDIA_TYPE_VALUES = {t.value for t in MediaType}


def validate_content(content: Optional[str]) -> str:
    if content is None or len(content.strip()) == 0:
        raise ValidationError("Post content cannot be empty")
    if len(content.strip()) > MAX_CONTENT_LENGTH:
        raise ValidationError("Post content exceeds maximum length")
    return content


def validate_platforms(platforms: Optional[Iterable[str]]) -> List[str]:
    if platforms is None:
        raise ValidationError("At least one platform must be selected")
    # duplicates collapse, first occurrence keeps its position
    result: List[str] = []
    for platform in platforms:
        value = platform.value if isinstance(platform, Platform) else str(platform)
        if value not in _PLATFORM_VALUES:
            raise ValidationError(f"Unsupported platform: {value}")
        if value not in result:
            result.append(value)
    if not result:
        raise ValidationError("At least one platform must be selected")
    return result


def validate_scheduled_at(scheduled_at: Optional[datetime], now: Optional[datetime] = None) -> datetime:
    if scheduled_at is None:
        raise ValidationError("Scheduled time is required")
    value = to_naive_utc(scheduled_at)
    if value <= (now or utcnow()):
        raise ValidationError("Scheduled time must be in the future")
    return value


async def validate_media_refs(session: AsyncSession, owner: str, media_refs: Optional[Iterable]) -> List[str]:
    """
    Every ref must name a Media row owned by owner. Order and duplicates are kept.
    """
    if media_refs is None:
        return []
    repo = MediaRepository(session)
    result: List[str] = []
    for ref in media_refs:
        try:
            media_id = ref if isinstance(ref, uuid.UUID) else uuid.UUID(str(ref))
        except ValueError:
            raise ValidationError("Invalid media reference")
        media = await repo.get_by_id(media_id)
        if media is None or media.owner != owner:
            raise ValidationError("Invalid media reference")
        result.append(str(media_id))
    return result


def validate_media_upload(file_type: str, mime_type: str, size: int) -> None:
    if file_type not in _MEDIA_TYPE_VALUES:
        raise ValidationError(f"Unsupported media type: {file_type}")
    if not mime_type or not mime_type.lower().startswith(f"{file_type}/"):
        raise ValidationError(f"MIME type {mime_type!r} does not match media type {file_type}")
    if size < 0:
        raise ValidationError("File size cannot be negative")
    limit = MAX_SIZE_BY_TYPE[file_type]
    if size > limit:
        label = "Image" if file_type == MediaType.IMAGE.value else "Video"
        raise ValidationError(f"{label} size exceeds limit of {limit // 1024 // 1024}MB")
