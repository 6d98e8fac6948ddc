from typing import Optional
import uuid

from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select
from sqlalchemy.dialects import postgresql, sqlite

from src.models.workspace_stats import WorkspaceStats
from src.utils import utcnow

_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class StatsRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_owner(self, owner: str) -> Optional[WorkspaceStats]:
        # the row is rewritten behind the identity map by upsert
        q = select(WorkspaceStats).where(WorkspaceStats.owner == owner).execution_options(populate_existing=True)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def upsert(self, owner: str, counts: dict) -> WorkspaceStats:
        """
        Overwrite the owner's snapshot with counts (no merging).
        A single INSERT ... ON CONFLICT (owner) DO UPDATE, so concurrent recomputes
        for an owner without a row cannot collide on the unique owner column.
        """
        dialect = self.session.get_bind().dialect.name
        insert = _INSERTS.get(dialect)
        if insert is None:
            raise RuntimeError(f"stats upsert is not supported on {dialect}")

        values = {**counts, "last_updated": utcnow()}
        q = insert(WorkspaceStats).values(id=uuid.uuid4(), owner=owner, **values)
        q = q.on_conflict_do_update(index_elements=["owner"], set_=values)
        await self.session.execute(q)
        await self.session.commit()
        return await self.get_by_owner(owner)
