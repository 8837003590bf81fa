"""Blob storage for incident images: Supabase Storage or local disk."""
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import httpx

from app.config import Settings
from app.errors import UploadFailed

logger = logging.getLogger(__name__)

LOCAL_URL_PATH = "/api/upload"


class BlobStorage(ABC):
    @abstractmethod
    async def upload(self, key: str, content: bytes, content_type: str, token: Optional[str] = None) -> str:
        """Store `content` under `key`; return its public URL. Raises UploadFailed."""

    async def close(self) -> None:
        """Release any held resources."""


class SupabaseStorage(BlobStorage):
    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> None:
        self._settings = settings
        self._base = f"{settings.supabase_url.rstrip('/')}/storage/v1/object"
        self._bucket = settings.storage_bucket
        self._client = client or httpx.AsyncClient(timeout=max(settings.http_timeout, 30.0))
        self._owns_client = client is None

    def public_url(self, key: str) -> str:
        return f"{self._base}/public/{self._bucket}/{key}"

    async def upload(self, key: str, content: bytes, content_type: str, token: Optional[str] = None) -> str:
        upload_url = f"{self._base}/{self._bucket}/{key}"
        headers = {
            "apikey": self._settings.supabase_anon_key,
            "Authorization": f"Bearer {token or self._settings.supabase_anon_key}",
            "Content-Type": content_type or "application/octet-stream",
            "x-upsert": "false",
        }
        try:
            r = await self._client.post(upload_url, headers=headers, content=content)
        except httpx.HTTPError as e:
            raise UploadFailed(f"supabase upload error: {e}") from e
        if r.status_code not in (200, 201):
            raise UploadFailed(f"supabase upload failed [{r.status_code}]: {r.text}")
        return self.public_url(key)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class LocalStorage(BlobStorage):
    """Writes to a local directory served by GET /api/upload/{filename}. Keys are flattened."""

    def __init__(self, upload_dir: str | Path, base_url: str = "") -> None:
        self.upload_dir = Path(upload_dir)
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self._base_url = base_url.strip().rstrip("/")

    @staticmethod
    def filename_for(key: str) -> str:
        return key.replace("/", "_")

    async def upload(self, key: str, content: bytes, content_type: str, token: Optional[str] = None) -> str:
        filename = self.filename_for(key)
        try:
            (self.upload_dir / filename).write_bytes(content)
        except OSError as e:
            raise UploadFailed(f"local upload failed: {e}") from e
        return f"{self._base_url}{LOCAL_URL_PATH}/{filename}"

    def resolve(self, filename: str) -> Optional[Path]:
        """Path of a stored file, or None if it would escape the upload dir."""
        path = (self.upload_dir / filename).resolve()
        if path.parent != self.upload_dir.resolve():
            return None
        return path


def create_storage(settings: Settings) -> BlobStorage:
    if settings.storage_backend == "supabase":
        if not settings.supabase_configured:
            raise RuntimeError("STORAGE_BACKEND=supabase requires SUPABASE_URL and SUPABASE_ANON_KEY")
        return SupabaseStorage(settings)
    return LocalStorage(settings.upload_dir, settings.media_base_url)
