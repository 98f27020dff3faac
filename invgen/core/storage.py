"""Object storage for generated PDFs, avatars and logos."""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
import logging

import boto3
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from invgen.core.config import settings
from invgen.utils.exceptions import StorageError

logger = logging.getLogger(__name__)


class ObjectStorage(ABC):
    @abstractmethod
    async def create_signed_upload_url(self, path: str) -> dict:
        """Return ``{"url": ..., "path": ...}`` for a direct client upload."""

    @abstractmethod
    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        ...

    @abstractmethod
    async def download(self, path: str) -> bytes:
        ...

    @abstractmethod
    async def get_public_url(self, path: str) -> str:
        ...

    @abstractmethod
    async def remove(self, path: str) -> None:
        ...


class S3Storage(ObjectStorage):
    """S3 (or S3-compatible) backend. boto3 is blocking, so every call runs in the thread pool."""

    def __init__(self, bucket: Optional[str] = None, client: Optional[BaseClient] = None):
        self.bucket = bucket or settings.S3_BUCKET
        self._client = client

    @property
    def client(self) -> BaseClient:
        if self._client is None:
            endpoint_url = settings.S3_ENDPOINT_URL.rstrip("/") if settings.S3_ENDPOINT_URL else None
            self._client = boto3.client(
                "s3",
                region_name=settings.S3_REGION or None,
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
                endpoint_url=endpoint_url,
            )
        return self._client

    async def _call(self, operation: str, func, *args, **kwargs):
        try:
            return await run_in_threadpool(func, *args, **kwargs)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 {operation} failed: {e}")
            raise StorageError(f"S3 {operation} failed") from e

    async def create_signed_upload_url(self, path: str) -> dict:
        url = await self._call(
            "presign",
            self.client.generate_presigned_url,
            "put_object",
            Params={"Bucket": self.bucket, "Key": path},
            ExpiresIn=settings.SIGNED_URL_EXPIRE_SECONDS,
        )
        return {"url": url, "path": path}

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        await self._call(
            "upload",
            self.client.put_object,
            Bucket=self.bucket,
            Key=path,
            Body=data,
            ContentType=content_type,
        )

    async def download(self, path: str) -> bytes:
        response = await self._call("download", self.client.get_object, Bucket=self.bucket, Key=path)
        return await self._call("download", response["Body"].read)

    async def get_public_url(self, path: str) -> str:
        if settings.S3_PUBLIC_BASE_URL:
            return f"{settings.S3_PUBLIC_BASE_URL.rstrip('/')}/{path}"
        return await self._call(
            "presign",
            self.client.generate_presigned_url,
            "get_object",
            Params={"Bucket": self.bucket, "Key": path},
            ExpiresIn=settings.SIGNED_URL_EXPIRE_SECONDS,
        )

    async def remove(self, path: str) -> None:
        await self._call("remove", self.client.delete_object, Bucket=self.bucket, Key=path)


@asynccontextmanager
async def temporary_object(
    storage: ObjectStorage,
    path: str,
    data: bytes,
    content_type: str,
) -> AsyncIterator[str]:
    """Upload ``data`` and yield its URL; the object is removed on exit, whatever happened."""
    await storage.upload(path, data, content_type)
    try:
        yield await storage.get_public_url(path)
    finally:
        try:
            await storage.remove(path)
        except StorageError as e:
            logger.warning(f"Could not remove temporary object {path}: {e}")


_storage: Optional[ObjectStorage] = None


def get_storage() -> ObjectStorage:
    global _storage
    if _storage is None:
        _storage = S3Storage()
    return _storage
