# src/infrastructure/media_repo.py
from typing import Optional, List
import uuid

from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select

from src.models.media import Media


class MediaRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, media: Media) -> Media:
        self.session.add(media)
        await self.session.commit()
        await self.session.refresh(media)
        return media

    async def get_by_id(self, id: uuid.UUID) -> Optional[Media]:
        q = select(Media).where(Media.id == id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_by_storage_ref(self, storage_ref: str) -> Optional[Media]:
        q = select(Media).where(Media.storage_ref == storage_ref)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_by_owner(self, owner: str, file_type: Optional[str] = None) -> List[Media]:
        q = select(Media).where(Media.owner == owner)
        if file_type is not None:
            q = q.where(Media.file_type == file_type)
        q = q.order_by(Media.uploaded_at.desc())
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def delete(self, media: Media) -> None:
        await self.session.delete(media)
        await self.session.commit()
