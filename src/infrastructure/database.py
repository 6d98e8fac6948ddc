import os
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import SQLModel
from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio.engine import create_async_engine, AsyncEngine
import structlog

# table registration for create_all
from src.models.post import Post  # noqa: F401
from src.models.media import Media  # noqa: F401
from src.models.workspace_stats import WorkspaceStats  # noqa: F401

logger = structlog.get_logger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./social_scheduler.db")

engine: AsyncEngine = create_async_engine(DATABASE_URL, echo=False)


async def init_db():
    try:
        async with engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)
    except Exception as e:
        logger.exception("db_init_failed", error=str(e))
        raise


@asynccontextmanager
async def get_session() -> AsyncSession:
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session
