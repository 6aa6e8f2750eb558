"""
Object Storage Gateway

Stores submission attachments in an S3 compatible bucket through the MinIO
client. The client is synchronous, so every call runs in a worker thread.

Objects live under ``submissions/`` with keys of the form
``submissions/<epoch-ms>_<random-hex>_<sanitized-filename>``. A submission
record keeps the object's public URL; ``key_from_url`` maps it back.

Every provider failure is raised as ``StorageError``.
"""

import asyncio
import io
import logging
import re
import secrets
import time
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from urllib.parse import quote, unquote

from minio import Minio
from minio.error import MinioException
from urllib3.exceptions import HTTPError

from courseapp.core.config import settings
from courseapp.core.errors import StorageError

logger = logging.getLogger(__name__)

SUBMISSIONS_PREFIX = "submissions/"
DEFAULT_FILENAME = "attachment.pdf"
MAX_FILENAME_LENGTH = 100

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")

# Failures raised by the MinIO client: API errors and transport errors
PROVIDER_ERRORS = (MinioException, HTTPError, OSError)


@dataclass(frozen=True)
class StoredObject:
    """An uploaded object."""

    key: str
    url: str


@dataclass(frozen=True)
class DownloadedObject:
    data: bytes
    content_type: str


@dataclass(frozen=True)
class ObjectInfo:
    key: str
    last_modified: datetime | None


def sanitize_filename(filename: str | None) -> str:
    """Reduce a client-supplied filename to a safe object key segment."""
    if not filename:
        return DEFAULT_FILENAME
    # Drop any directory part, whatever the separator
    base = re.split(r"[\\/]", filename)[-1]
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", base).strip("._")
    return cleaned[-MAX_FILENAME_LENGTH:] or DEFAULT_FILENAME


def build_object_key(filename: str | None) -> str:
    """Generate a unique key under the submissions prefix."""
    epoch_ms = int(time.time() * 1000)
    return f"{SUBMISSIONS_PREFIX}{epoch_ms}_{secrets.token_hex(4)}_{sanitize_filename(filename)}"


class ObjectStorage:
    """Attachment storage on an S3 compatible bucket."""

    def __init__(self, client: Minio, bucket: str, base_url: str):
        self.client = client
        self.bucket = bucket
        self.base_url = base_url.rstrip("/")

    def url_for(self, key: str) -> str:
        return f"{self.base_url}/{self.bucket}/{quote(key)}"

    def key_from_url(self, url: str | None) -> str | None:
        """Object key for a URL produced by ``url_for``; None for foreign URLs."""
        if not url:
            return None
        prefix = f"{self.base_url}/{self.bucket}/"
        if not url.startswith(prefix):
            return None
        return unquote(url[len(prefix) :]) or None

    async def ensure_bucket(self) -> None:
        """Create the bucket when it does not exist yet."""
        try:
            exists = await asyncio.to_thread(self.client.bucket_exists, self.bucket)
            if not exists:
                await asyncio.to_thread(self.client.make_bucket, self.bucket)
                logger.info(f"Created storage bucket: {self.bucket}")
        except PROVIDER_ERRORS as e:
            logger.error(f"Failed to ensure bucket {self.bucket} exists: {e}")
            raise StorageError("Object storage is unavailable") from e

    async def upload(self, data: bytes, filename: str | None, content_type: str) -> StoredObject:
        """
        Store bytes under a freshly generated key.

        Args:
            data: File contents
            filename: Client-supplied filename (sanitized into the key)
            content_type: MIME type recorded on the object

        Returns:
            StoredObject with the key and its URL

        Raises:
            StorageError: If the provider rejects the upload
        """
        key = build_object_key(filename)
        try:
            await asyncio.to_thread(
                self.client.put_object,
                bucket_name=self.bucket,
                object_name=key,
                data=io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )
        except PROVIDER_ERRORS as e:
            logger.error(f"Failed to upload {key}: {e}")
            raise StorageError("Failed to upload file") from e

        logger.info(f"Uploaded {key} ({len(data)} bytes)")
        return StoredObject(key=key, url=self.url_for(key))

    def _read_object(self, key: str) -> DownloadedObject:
        response = self.client.get_object(bucket_name=self.bucket, object_name=key)
        try:
            data = response.read()
            content_type = response.headers.get("Content-Type") or "application/octet-stream"
        finally:
            response.close()
            response.release_conn()
        return DownloadedObject(data=data, content_type=content_type)

    async def download(self, key: str) -> DownloadedObject:
        """
        Fetch an object's bytes.

        Raises:
            StorageError: If the object is missing or the provider fails
        """
        try:
            return await asyncio.to_thread(self._read_object, key)
        except PROVIDER_ERRORS as e:
            logger.error(f"Failed to download {key}: {e}")
            raise StorageError("Failed to download file") from e

    async def delete(self, key: str) -> None:
        """
        Delete an object. Deleting a missing key is not an error.

        Raises:
            StorageError: If the provider fails
        """
        try:
            await asyncio.to_thread(self.client.remove_object, bucket_name=self.bucket, object_name=key)
        except PROVIDER_ERRORS as e:
            logger.error(f"Failed to delete {key}: {e}")
            raise StorageError("Failed to delete file") from e

        logger.info(f"Deleted {key}")

    async def discard(self, url: str | None) -> bool:
        """
        Delete the object behind an attachment URL, logging instead of raising.

        Returns:
            True if there was nothing to delete or the delete succeeded
        """
        key = self.key_from_url(url)
        if key is None:
            return True

        try:
            await self.delete(key)
            return True
        except StorageError:
            logger.error(f"Could not discard {key}; left for the orphan sweep")
            return False

    async def list_objects(self, prefix: str = SUBMISSIONS_PREFIX) -> list[ObjectInfo]:
        """List objects under a prefix."""

        def _list() -> list[ObjectInfo]:
            return [
                ObjectInfo(key=obj.object_name, last_modified=obj.last_modified)
                for obj in self.client.list_objects(bucket_name=self.bucket, prefix=prefix, recursive=True)
            ]

        try:
            return await asyncio.to_thread(_list)
        except PROVIDER_ERRORS as e:
            logger.error(f"Failed to list objects under {prefix}: {e}")
            raise StorageError("Failed to list files") from e


@lru_cache
def get_storage() -> ObjectStorage:
    """Get the object storage gateway configured from settings."""
    client = Minio(
        settings.storage_endpoint,
        access_key=settings.storage_access_key,
        secret_key=settings.storage_secret_key,
        secure=settings.storage_secure,
    )
    return ObjectStorage(client, settings.storage_bucket, settings.storage_base_url)
