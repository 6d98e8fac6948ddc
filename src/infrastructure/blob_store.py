# src/infrastructure/blob_store.py
import os
import uuid
import asyncio
from pathlib import Path
from datetime import timedelta
from typing import Optional

import structlog
from jose import JWTError

from src.UAA.utils import encode_token, decode_token

logger = structlog.get_logger(__name__)

MEDIA_ROOT = os.getenv("MEDIA_ROOT", "./media")
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")
UPLOAD_URL_EXPIRE_MINUTES = int(os.getenv("UPLOAD_URL_EXPIRE_MINUTES", "15"))
# largest object the store accepts at all; per-type limits are enforced when media is saved
MAX_UPLOAD_BYTES = 100 * 1024 * 1024


class BlobStoreError(Exception):
    pass


class BlobStore:
    """Storage for uploaded media bytes, addressed by opaque storage refs."""

    async def generate_upload_url(self, owner: str) -> str:
        raise NotImplementedError("Subclasses must implement generate_upload_url method")

    async def get_url(self, storage_ref: str) -> Optional[str]:
        raise NotImplementedError("Subclasses must implement get_url method")

    async def delete(self, storage_ref: str) -> None:
        raise NotImplementedError("Subclasses must implement delete method")

    async def store_upload(self, token: str, data: bytes) -> str:
        raise BlobStoreError("this store does not accept direct uploads")

    def local_path(self, storage_ref: str) -> Optional[Path]:
        return None


class LocalBlobStore(BlobStore):
    """
    Filesystem-backed store. Upload URLs carry a signed, short-lived token that
    names the storage ref the bytes will be written to; the files themselves are
    served by the media router.
    """

    def __init__(self, root: str = MEDIA_ROOT, base_url: str = PUBLIC_BASE_URL):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def _path(self, storage_ref: str) -> Path:
        # refs are uuid hex strings; anything else cannot name a file here
        try:
            uuid.UUID(hex=storage_ref)
        except ValueError:
            raise BlobStoreError("invalid storage ref")
        return self.root / storage_ref

    async def generate_upload_url(self, owner: str) -> str:
        storage_ref = uuid.uuid4().hex
        issued = encode_token({"sub": owner, "ref": storage_ref}, "upload", timedelta(minutes=UPLOAD_URL_EXPIRE_MINUTES))
        logger.info("upload_url_issued", owner=owner, storage_ref=storage_ref)
        return f"{self.base_url}/media/upload/{issued['token']}"

    async def store_upload(self, token: str, data: bytes) -> str:
        """
        Write the bytes for a previously issued upload token. Returns the storage ref.
        """
        try:
            payload = decode_token(token, expected_type="upload")
        except JWTError:
            raise BlobStoreError("invalid or expired upload token")
        if len(data) > MAX_UPLOAD_BYTES:
            raise BlobStoreError("upload too large")
        path = self._path(payload["ref"])
        if path.exists():
            raise BlobStoreError("upload token already used")
        await asyncio.to_thread(self._write, path, data)
        logger.info("upload_stored", owner=payload.get("sub"), storage_ref=payload["ref"], size=len(data))
        return payload["ref"]

    def _write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    def local_path(self, storage_ref: str) -> Optional[Path]:
        try:
            path = self._path(storage_ref)
        except BlobStoreError:
            return None
        return path if path.is_file() else None

    async def get_url(self, storage_ref: str) -> Optional[str]:
        if self.local_path(storage_ref) is None:
            return None
        return f"{self.base_url}/media/files/{storage_ref}"

    async def delete(self, storage_ref: str) -> None:
        path = self._path(storage_ref)
        await asyncio.to_thread(path.unlink, True)
        logger.info("blob_deleted", storage_ref=storage_ref)


_blob_store: Optional[BlobStore] = None


def get_blob_store() -> BlobStore:
    global _blob_store
    if _blob_store is None:
        _blob_store = LocalBlobStore()
    return _blob_store
