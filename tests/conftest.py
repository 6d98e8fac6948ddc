"""Shared fixtures and fake collaborators for testing."""

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Dict, List, Optional, Tuple
import uuid

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from src.infrastructure.blob_store import BlobStore
from src.infrastructure.posts_repo import PostRepository
from src.infrastructure.publishing_client import PublishError, PublishingClient
from src.infrastructure.timer import TimerService
from src.models.media import Media
from src.models.post import Post
from src.utils import utcnow

OWNER = "user_alice"
OTHER_OWNER = "user_bob"


class FakeTimer(TimerService):
    """Records schedule/cancel calls instead of firing anything."""

    def __init__(self, durable: bool = False):
        super().__init__()
        self.is_durable = durable
        self.scheduled: Dict[str, Tuple[float, str, dict]] = {}
        self.cancelled: List[str] = []
        self._counter = 0

    async def schedule(self, delay_seconds: float, task_name: str, payload: dict) -> str:
        self._counter += 1
        handle = f"task-{self._counter}"
        self.scheduled[handle] = (delay_seconds, task_name, payload)
        return handle

    async def cancel(self, handle: str) -> None:
        self.cancelled.append(handle)
        self.scheduled.pop(handle, None)

    async def is_pending(self, handle: str) -> bool:
        return handle in self.scheduled


class FakeBlobStore(BlobStore):
    """In-memory object store handing out predictable URLs."""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.deleted: List[str] = []

    def put(self, data: bytes = b"bytes") -> str:
        ref = uuid.uuid4().hex
        self.objects[ref] = data
        return ref

    async def generate_upload_url(self, owner: str) -> str:
        return f"https://uploads.test/{owner}/{uuid.uuid4().hex}"

    async def get_url(self, storage_ref: str) -> Optional[str]:
        if storage_ref not in self.objects:
            return None
        return f"https://cdn.test/{storage_ref}"

    async def delete(self, storage_ref: str) -> None:
        self.deleted.append(storage_ref)
        self.objects.pop(storage_ref, None)


class FakePublisher(PublishingClient):
    """Succeeds for every platform except those mapped to an error message."""

    def __init__(self, failures: Optional[Dict[str, str]] = None):
        self.failures = failures or {}
        self.calls: List[Tuple[str, str, List[str]]] = []

    async def publish(self, platform: str, content: str, media_urls: List[str]) -> dict:
        self.calls.append((platform, content, list(media_urls)))
        if platform in self.failures:
            raise PublishError(self.failures[platform])
        return {"success": True, "platform": platform}


@pytest_asyncio.fixture
async def engine(tmp_path):
    """A file-backed SQLite database per test so separate sessions see each other's commits."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    @asynccontextmanager
    async def factory():
        async with AsyncSession(engine, expire_on_commit=False) as session:
            yield session

    return factory


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fetch_post(session_factory):
    """Read a post through a fresh session, bypassing any stale identity map."""

    async def fetch(post_id) -> Optional[Post]:
        async with session_factory() as s:
            return await PostRepository(s).get_by_id(post_id)

    return fetch


@pytest.fixture
def timer():
    return FakeTimer()


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def make_media(session, blob_store):
    """Insert a Media row whose bytes exist in the fake blob store."""

    async def make(owner: str = OWNER, file_type: str = "image", size: int = 1024) -> Media:
        ref = blob_store.put()
        media = Media(
            owner=owner,
            file_name=f"{ref}.{'png' if file_type == 'image' else 'mp4'}",
            file_type=file_type,
            mime_type="image/png" if file_type == "image" else "video/mp4",
            size=size,
            storage_ref=ref,
        )
        session.add(media)
        await session.commit()
        await session.refresh(media)
        return media

    return make


def in_one_hour():
    return utcnow() + timedelta(hours=1)


def assert_status_invariants(post: Post) -> None:
    """pending handle iff scheduled, error iff failed, published_at iff published."""
    assert (post.pending_task_handle is not None) == (post.status == "scheduled")
    assert (post.error is not None) == (post.status == "failed")
    assert (post.published_at is not None) == (post.status == "published")
