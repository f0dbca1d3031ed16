"""File storage abstraction. Local filesystem or S3-compatible object storage.

Exactly one backend is active per process. ``create_file_storage`` picks it
once at startup; everything else receives the instance and only ever calls
``put``/``get``/``delete``.
"""
import asyncio
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import aiofiles
import aiofiles.os
import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from cdn.config import Settings
from cdn.errors import CDNError, ErrorKind

logger = logging.getLogger(__name__)


class FileStorage(ABC):
    """Uniform byte storage keyed by (store, file id)."""

    @abstractmethod
    async def put(self, store: str, file_id: str, data: bytes) -> None:
        ...

    @abstractmethod
    async def get(self, store: str, file_id: str) -> bytes:
        ...

    @abstractmethod
    async def delete(self, store: str, file_id: str) -> None:
        ...

    async def close(self) -> None:
        """Release any held resources."""


class LocalFileStorage(FileStorage):
    """Flat directory of files named by id. I/O goes through aiofiles' thread pool."""

    def __init__(self, base_path: str | Path):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _path(self, file_id: str) -> Path:
        # Ids are ULIDs; reject anything that could escape the directory
        if not file_id or os.sep in file_id or file_id in (".", ".."):
            raise CDNError(ErrorKind.STORAGE_ERROR)
        return self.base_path / file_id

    async def put(self, store: str, file_id: str, data: bytes) -> None:
        path = self._path(file_id)
        try:
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            raise CDNError(ErrorKind.STORAGE_ERROR) from e

    async def get(self, store: str, file_id: str) -> bytes:
        path = self._path(file_id)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except OSError as e:
            logger.error(f"Failed to read {path}: {e}")
            raise CDNError(ErrorKind.STORAGE_ERROR) from e

    async def delete(self, store: str, file_id: str) -> None:
        path = self._path(file_id)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            # Idempotent, like an S3 delete of a missing key
            logger.warning(f"File already absent from local storage: {path}")
        except OSError as e:
            logger.error(f"Failed to delete {path}: {e}")
            raise CDNError(ErrorKind.STORAGE_ERROR) from e


class S3FileStorage(FileStorage):
    """One bucket per store, object key = file id, path-style addressing.

    The boto3 client is created once and shared; boto3 clients are thread-safe,
    so each blocking call is pushed to a worker thread.
    """

    def __init__(self, client: Any):
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3FileStorage":
        client = boto3.client(
            "s3",
            region_name=settings.S3_REGION,
            endpoint_url=settings.S3_ENDPOINT,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            config=Config(s3={"addressing_style": "path"}),
        )
        return cls(client)

    async def _call(self, operation: str, **kwargs) -> dict:
        method = getattr(self.client, operation)
        try:
            response = await asyncio.to_thread(method, **kwargs)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 {operation} failed for {kwargs.get('Bucket')}/{kwargs.get('Key')}: {e}")
            raise CDNError(ErrorKind.STORAGE_ERROR) from e
        status = response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
        if not 200 <= status < 300:
            logger.error(f"S3 {operation} returned HTTP {status} for {kwargs.get('Bucket')}/{kwargs.get('Key')}")
            raise CDNError(ErrorKind.STORAGE_ERROR)
        return response

    async def put(self, store: str, file_id: str, data: bytes) -> None:
        await self._call("put_object", Bucket=store, Key=file_id, Body=data)

    async def get(self, store: str, file_id: str) -> bytes:
        response = await self._call("get_object", Bucket=store, Key=file_id)
        body = response["Body"]
        try:
            return await asyncio.to_thread(body.read)
        except (BotoCoreError, OSError) as e:
            logger.error(f"Failed to read S3 object body {store}/{file_id}: {e}")
            raise CDNError(ErrorKind.STORAGE_ERROR) from e
        finally:
            body.close()

    async def delete(self, store: str, file_id: str) -> None:
        await self._call("delete_object", Bucket=store, Key=file_id)

    async def close(self) -> None:
        self.client.close()


def create_file_storage(settings: Settings, base_path: Optional[str] = None) -> FileStorage:
    """Pick the process-wide backend from configuration."""
    if settings.use_s3:
        logger.info("Using S3 storage, make sure all configured stores have buckets!")
        return S3FileStorage.from_settings(settings)
    path = base_path or settings.LOCAL_STORAGE_PATH
    logger.info(f"Using local storage at {path}, the directory will be created if it does not exist")
    return LocalFileStorage(path)
