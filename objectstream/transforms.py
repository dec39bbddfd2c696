"""Built-in per-object content transforms and the registry used to build them."""

from __future__ import annotations

import hashlib
import json
import zlib
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Type

from .config import TransformConfig
from .interfaces import ContentTransform, TransformFactory


class HashDigestTransform(ContentTransform):
    """Emits a single hex digest of the object's bytes once it has been read."""

    def __init__(self, identifier: Any = None, algorithm: str = "sha256") -> None:
        self.identifier = identifier
        self._hasher = hashlib.new(algorithm)

    def transform(self, chunk: bytes) -> Iterable[str]:
        self._hasher.update(chunk)
        return ()

    def flush(self) -> Iterable[str]:
        return (self._hasher.hexdigest(),)


def _gzip_decompressor():
    # 16 + MAX_WBITS selects the gzip container
    return zlib.decompressobj(16 + zlib.MAX_WBITS)


class GunzipTransform(ContentTransform):
    """Incrementally decompresses gzip content, including multi-member files."""

    def __init__(self, identifier: Any = None) -> None:
        self.identifier = identifier
        self._decompressor = _gzip_decompressor()

    def transform(self, chunk: bytes) -> Iterable[bytes]:
        parts = [self._decompressor.decompress(chunk)]
        # a finished member may be followed by another one, as with `cat a.gz b.gz`
        while self._decompressor.eof and self._decompressor.unused_data:
            remainder = self._decompressor.unused_data
            self._decompressor = _gzip_decompressor()
            parts.append(self._decompressor.decompress(remainder))
        data = b"".join(parts)
        return (data,) if data else ()

    def flush(self) -> Iterable[bytes]:
        if not self._decompressor.eof:
            raise zlib.error("incomplete or truncated gzip stream")
        data = self._decompressor.flush()
        return (data,) if data else ()


class LineSplitTransform(ContentTransform):
    """
    Decodes the object as text and emits it line by line.

    With ``keepends`` (the default) every line, including a final unterminated
    one, is emitted ending in ``"\\n"``; ``"\\r\\n"`` is normalized.
    """

    def __init__(self, identifier: Any = None, encoding: str = "utf-8", keepends: bool = True) -> None:
        self.identifier = identifier
        self._encoding = encoding
        self._ending = "\n" if keepends else ""
        self._pending = b""

    def transform(self, chunk: bytes) -> Iterable[str]:
        data = self._pending + chunk
        lines = data.split(b"\n")
        self._pending = lines.pop()
        return [self._decode(line) for line in lines]

    def flush(self) -> Iterable[str]:
        if not self._pending:
            return ()
        tail, self._pending = self._pending, b""
        return (self._decode(tail),)

    def _decode(self, line: bytes) -> str:
        return line.rstrip(b"\r").decode(self._encoding) + self._ending


class JsonLinesTransform(LineSplitTransform):
    """Parses newline-delimited JSON; blank lines are skipped. Produces records."""

    produces_records = True

    def __init__(self, identifier: Any = None, encoding: str = "utf-8") -> None:
        super().__init__(identifier, encoding=encoding, keepends=False)

    def transform(self, chunk: bytes) -> Iterable[Any]:
        return self._parse(super().transform(chunk))

    def flush(self) -> Iterable[Any]:
        return self._parse(super().flush())

    @staticmethod
    def _parse(lines: Iterable[str]) -> List[Any]:
        return [json.loads(line) for line in lines if line.strip()]


@dataclass
class TransformRegistry:
    """Registry-backed builder of per-object transform factories."""

    registry: Dict[str, Type[ContentTransform]]

    def create(self, config: TransformConfig) -> TransformFactory:
        try:
            transform_cls = self.registry[config.type]
        except KeyError as exc:
            raise ValueError(f"Unknown transform type: {config.type}") from exc
        params = dict(config.params)

        def make_transform(identifier: Any) -> ContentTransform:
            return transform_cls(identifier, **params)

        return make_transform


def build_default_registry() -> TransformRegistry:
    registry: Dict[str, Type[ContentTransform]] = {
        "hash": HashDigestTransform,
        "gunzip": GunzipTransform,
        "lines": LineSplitTransform,
        "jsonl": JsonLinesTransform,
    }
    return TransformRegistry(registry)


def produces_records(config: Optional[TransformConfig]) -> bool:
    """Whether the configured transform emits records rather than bytes or text."""
    if config is None:
        return False
    transform_cls = build_default_registry().registry.get(config.type)
    return bool(getattr(transform_cls, "produces_records", False))


def build_transform_factory(config: Optional[TransformConfig]) -> Optional[TransformFactory]:
    if config is None:
        return None
    return build_default_registry().create(config)
