"""High-level streaming job orchestration."""

from __future__ import annotations

import json
import logging
from typing import Any, BinaryIO, Iterable, Optional

from .config import AppConfig
from .interfaces import ObjectStoreClient, TransformFactory
from .models import StreamResult
from .store import build_store_client
from .stream import ObjectContentStream
from .transforms import build_transform_factory

logger = logging.getLogger(__name__)


def encode_unit(unit: Any) -> bytes:
    """Serialize one forwarded unit for a binary sink; records become JSON lines."""
    if isinstance(unit, (bytes, bytearray, memoryview)):
        return bytes(unit)
    if isinstance(unit, str):
        return unit.encode("utf-8")
    return (json.dumps(unit, default=str) + "\n").encode("utf-8")


class StreamPipeline:
    def __init__(
        self,
        config: AppConfig,
        store_client: Optional[ObjectStoreClient] = None,
        make_transform: Optional[TransformFactory] = None,
    ) -> None:
        self._config = config
        self._store_client = store_client or build_store_client(
            config.store, chunk_size=config.options.chunk_size
        )
        self._make_transform = make_transform or build_transform_factory(config.transform)

    def open(self, identifiers: Iterable[Any]) -> ObjectContentStream:
        return ObjectContentStream(
            identifiers,
            self._store_client,
            self._config.bucket,
            make_transform=self._make_transform,
            options=self._config.options,
        )

    def run(self, identifiers: Iterable[Any], sink: BinaryIO) -> StreamResult:
        units_written = 0
        bytes_written = 0
        logger.info("Streaming objects from bucket %s", self._config.bucket)
        with self.open(identifiers) as stream:
            for unit in stream:
                data = encode_unit(unit)
                sink.write(data)
                units_written += 1
                bytes_written += len(data)
            objects_processed = stream.objects_completed
        sink.flush()
        logger.info(
            "Bucket %s finished, %d objects streamed, %d bytes written",
            self._config.bucket,
            objects_processed,
            bytes_written,
        )
        return StreamResult(
            bucket=self._config.bucket,
            objects_processed=objects_processed,
            units_written=units_written,
            bytes_written=bytes_written,
        )
