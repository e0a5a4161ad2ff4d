"""
Object storage for templates and generated output files.

SupabaseStorage talks to Supabase Storage buckets; InMemoryStorage keeps
bytes in a dict for demo mode and tests.
"""

from abc import ABC, abstractmethod
from typing import Optional

import httpx
import structlog

from exceptions import StorageError, NetworkError

logger = structlog.get_logger(__name__)


class FileStorage(ABC):
    """upload / download / remove by (bucket, path)."""

    @abstractmethod
    def upload(self, bucket: str, path: str, content: bytes, content_type: Optional[str] = None) -> str:
        """Store bytes, return the stored path."""

    @abstractmethod
    def download(self, bucket: str, path: str) -> bytes:
        """Fetch stored bytes."""

    @abstractmethod
    def remove(self, bucket: str, paths: list[str]) -> None:
        """Delete objects; missing paths are ignored."""


class SupabaseStorage(FileStorage):
    """Supabase Storage buckets."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            from config.database import get_supabase_client
            self._client = get_supabase_client()
        return self._client

    def upload(self, bucket: str, path: str, content: bytes, content_type: Optional[str] = None) -> str:
        logger.info("storage_upload", bucket=bucket, path=path, size_bytes=len(content))
        options = {"content-type": content_type or "application/octet-stream", "upsert": "true"}
        try:
            self.client.storage.from_(bucket).upload(path, content, options)
        except httpx.TransportError as e:
            raise NetworkError("storage", f"Could not reach storage: {e}") from e
        except Exception as e:
            logger.error("storage_upload_failed", bucket=bucket, path=path, error=str(e))
            raise StorageError("upload", f"{bucket}/{path}", str(e)) from e
        return path

    def download(self, bucket: str, path: str) -> bytes:
        logger.debug("storage_download", bucket=bucket, path=path)
        try:
            data = self.client.storage.from_(bucket).download(path)
        except httpx.TransportError as e:
            raise NetworkError("storage", f"Could not reach storage: {e}") from e
        except Exception as e:
            logger.error("storage_download_failed", bucket=bucket, path=path, error=str(e))
            raise StorageError("download", f"{bucket}/{path}", str(e)) from e

        if not data:
            raise StorageError("download", f"{bucket}/{path}", "Empty response")
        return data

    def remove(self, bucket: str, paths: list[str]) -> None:
        if not paths:
            return
        logger.info("storage_remove", bucket=bucket, count=len(paths))
        try:
            self.client.storage.from_(bucket).remove(paths)
        except httpx.TransportError as e:
            raise NetworkError("storage", f"Could not reach storage: {e}") from e
        except Exception as e:
            logger.error("storage_remove_failed", bucket=bucket, paths=paths, error=str(e))
            raise StorageError("remove", f"{bucket}/{paths[0]}", str(e)) from e


class InMemoryStorage(FileStorage):
    """Dict-backed storage."""

    def __init__(self):
        self._objects: dict[tuple[str, str], bytes] = {}

    def upload(self, bucket: str, path: str, content: bytes, content_type: Optional[str] = None) -> str:
        self._objects[(bucket, path)] = bytes(content)
        logger.debug("memory_storage_upload", bucket=bucket, path=path, size_bytes=len(content))
        return path

    def download(self, bucket: str, path: str) -> bytes:
        try:
            return self._objects[(bucket, path)]
        except KeyError:
            raise StorageError("download", f"{bucket}/{path}", "Object not found")

    def remove(self, bucket: str, paths: list[str]) -> None:
        for path in paths:
            self._objects.pop((bucket, path), None)

    def exists(self, bucket: str, path: str) -> bool:
        return (bucket, path) in self._objects
