"""Object storage for proposal documents and images."""

from __future__ import annotations

import logging
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Optional, Tuple

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import Settings, get_settings
from app.core.errors import UpstreamStorageError

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_name(name: str) -> str:
    base = (name or "file").replace("\\", "/").rsplit("/", 1)[-1]
    return _UNSAFE_NAME_CHARS.sub("_", base).strip("._") or "file"


@dataclass(frozen=True)
class StoredObject:
    id: str
    url: str


class ObjectStore(ABC):
    """put/delete contract the proposal workflow relies on."""

    @abstractmethod
    def put(self, data: bytes, name: str, mime_type: str, folder: str) -> StoredObject:
        ...

    @abstractmethod
    def delete(self, object_id: str) -> None:
        ...


class S3ObjectStore(ObjectStore):
    """Stores uploads in an S3 bucket under <folder>/<uuid>_<name>."""

    def __init__(
        self,
        bucket_name: str,
        region: str,
        public_base_url: Optional[str] = None,
        timeout_seconds: float = 30.0,
        s3_client=None,
    ):
        """
        Args:
            bucket_name: target bucket
            region: bucket region, also used to build public URLs
            public_base_url: CDN/base URL override for returned links
            timeout_seconds: connect + read timeout for every S3 call
            s3_client: optional pre-built client (for testing)
        """
        self.bucket_name = bucket_name
        self.region = region
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self.s3_client = s3_client or boto3.client(
            "s3",
            region_name=region,
            config=Config(
                connect_timeout=timeout_seconds,
                read_timeout=timeout_seconds,
                retries={"max_attempts": 2, "mode": "standard"},
            ),
        )

    def _url_for(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{key}"

    def put(self, data: bytes, name: str, mime_type: str, folder: str) -> StoredObject:
        key = f"{folder.strip('/')}/{uuid.uuid4().hex}_{_safe_name(name)}"
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=mime_type or "application/octet-stream",
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("S3 upload failed for %s: %s", key, e)
            raise UpstreamStorageError(f"Upload of '{name}' failed.") from e

        logger.info("Stored object at s3://%s/%s", self.bucket_name, key)
        return StoredObject(id=key, url=self._url_for(key))

    def delete(self, object_id: str) -> None:
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=object_id)
        except (ClientError, BotoCoreError) as e:
            logger.error("S3 delete failed for %s: %s", object_id, e)
            raise UpstreamStorageError(f"Delete of '{object_id}' failed.") from e


class InMemoryObjectStore(ObjectStore):
    """Process-local store for local development and tests."""

    def __init__(self, base_url: str = "memory://objects"):
        self.base_url = base_url.rstrip("/")
        self.objects: Dict[str, Tuple[bytes, str]] = {}

    def put(self, data: bytes, name: str, mime_type: str, folder: str) -> StoredObject:
        key = f"{folder.strip('/')}/{uuid.uuid4().hex}_{_safe_name(name)}"
        self.objects[key] = (data, mime_type)
        return StoredObject(id=key, url=f"{self.base_url}/{key}")

    def delete(self, object_id: str) -> None:
        self.objects.pop(object_id, None)


def build_object_store(settings: Settings) -> ObjectStore:
    if settings.object_store_backend == "memory":
        return InMemoryObjectStore()
    return S3ObjectStore(
        bucket_name=settings.s3_bucket,
        region=settings.s3_region,
        public_base_url=settings.s3_public_base_url,
        timeout_seconds=settings.object_store_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_object_store() -> ObjectStore:
    return build_object_store(get_settings())
