"""Store clients able to open object content streams."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, BinaryIO, Iterator, Optional

import boto3

from .config import DEFAULT_CHUNK_SIZE, StoreClientConfig
from .interfaces import ObjectStoreClient
from .models import ObjectRequest

logger = logging.getLogger(__name__)


class S3ObjectBody:
    """Chunked iterator over a ``get_object`` response body."""

    def __init__(self, response: dict, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._body = response["Body"]
        self._chunk_size = chunk_size
        self.content_length: Optional[int] = response.get("ContentLength")
        self.etag: Optional[str] = response.get("ETag")

    def __iter__(self) -> Iterator[bytes]:
        return self._body.iter_chunks(chunk_size=self._chunk_size)

    def close(self) -> None:
        self._body.close()


class S3ObjectStoreClient(ObjectStoreClient):
    """
    Opens S3 objects for streaming with ``get_object``.

    Optional params:
    - region: AWS region (default: boto3's configured region)
    - endpoint_url: Custom S3 endpoint (for LocalStack or MinIO)

    Credentials are resolved by boto3's default chain. Failures such as
    ``NoSuchKey`` surface as botocore ``ClientError`` and are not retried.
    """

    def __init__(
        self,
        client: Any = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._s3_client = client or boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
        )
        self._chunk_size = chunk_size

    def fetch_object_stream(self, bucket: str, key: str) -> S3ObjectBody:
        request = ObjectRequest(bucket=bucket, key=key)
        response = self._s3_client.get_object(**request.to_params())
        logger.debug(
            "Opened s3://%s/%s (%s bytes)",
            request.bucket,
            request.key,
            response.get("ContentLength", "unknown"),
        )
        return S3ObjectBody(response, self._chunk_size)


class LocalObjectBody:
    """Chunked iterator over a local file standing in for an object."""

    def __init__(self, handle: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._handle = handle
        self._chunk_size = chunk_size

    def __iter__(self) -> Iterator[bytes]:
        while True:
            chunk = self._handle.read(self._chunk_size)
            if not chunk:
                return
            yield chunk

    def close(self) -> None:
        self._handle.close()


class LocalFilesystemObjectStoreClient(ObjectStoreClient):
    """Serves objects from ``{base_path}/{bucket}/{key}`` on the local disk."""

    def __init__(self, base_path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._base_path = Path(base_path)
        self._chunk_size = chunk_size

    def fetch_object_stream(self, bucket: str, key: str) -> LocalObjectBody:
        bucket_dir = (self._base_path / bucket).resolve()
        target = (bucket_dir / key).resolve()
        if bucket_dir not in target.parents:
            raise ValueError(f"Key escapes bucket directory: {key}")
        if not target.is_file():
            raise FileNotFoundError(f"No such object: {bucket}/{key}")
        logger.debug("Opened %s", target)
        return LocalObjectBody(target.open("rb"), self._chunk_size)


def build_store_client(config: StoreClientConfig, chunk_size: int = DEFAULT_CHUNK_SIZE) -> ObjectStoreClient:
    if config.type == "s3":
        return S3ObjectStoreClient(
            region=config.params.get("region"),
            endpoint_url=config.params.get("endpoint_url"),
            chunk_size=chunk_size,
        )
    if config.type == "local_fs":
        base_path = config.params.get("base_path")
        if not base_path:
            raise ValueError("LocalFilesystemObjectStoreClient requires base_path param")
        return LocalFilesystemObjectStoreClient(Path(base_path), chunk_size=chunk_size)
    raise ValueError(f"Unsupported store client type: {config.type}")
