import logging
from pathlib import Path
from typing import Protocol

import boto3

from ..core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class ObjectStorage(Protocol):
    def put(self, key: str, data: bytes, content_type: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def public_url(self, key: str) -> str: ...


class LocalMediaStorage:
    """Stores objects as files below ``base_path``, addressed by storage key."""

    def __init__(self, base_path: Path, base_url: str = "/media"):
        self.base_path = base_path
        self.base_url = base_url.rstrip("/")
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        path = (self.base_path / key).resolve()
        if self.base_path.resolve() not in path.parents:
            raise ValueError(f"Storage key escapes media root: {key}")
        return path

    def put(self, key: str, data: bytes, content_type: str) -> None:
        dest_path = self._path_for(key)
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = dest_path.with_name(dest_path.name + ".part")
        with tmp_path.open("wb") as buffer:
            buffer.write(data)
        tmp_path.replace(dest_path)

    def delete(self, key: str) -> None:
        self._path_for(key).unlink(missing_ok=True)

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/{key}"


class S3MediaStorage:
    def __init__(self, bucket: str, region: str, endpoint_url: str | None = None, client=None):
        self.bucket = bucket
        self.region = region
        self.client = client or boto3.client("s3", region_name=region, endpoint_url=endpoint_url)

    def put(self, key: str, data: bytes, content_type: str) -> None:
        self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)

    def delete(self, key: str) -> None:
        self.client.delete_object(Bucket=self.bucket, Key=key)

    def public_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"


def build_media_storage(settings: Settings) -> ObjectStorage:
    if settings.storage_backend == "s3":
        logger.info("Using S3 media storage (bucket=%s, region=%s)", settings.s3_bucket, settings.s3_region)
        return S3MediaStorage(settings.s3_bucket, settings.s3_region, settings.s3_endpoint_url)
    return LocalMediaStorage(settings.resolved_media_root, settings.resolved_media_base_url)


def get_media_storage() -> ObjectStorage:
    return build_media_storage(get_settings())
