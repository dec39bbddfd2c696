"""Configuration models and helpers for the content stream."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import json

DEFAULT_CHUNK_SIZE = 1024 * 1024  # 1 MiB


@dataclass(frozen=True)
class StreamOptions:
    """Immutable adapter options.

    Full-metadata mode forces object mode: record input with raw byte output
    is not supported.
    """

    full_metadata: bool = False
    object_mode: bool = False
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self) -> None:
        if self.full_metadata and not self.object_mode:
            object.__setattr__(self, "object_mode", True)
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be a positive integer")


@dataclass
class StoreClientConfig:
    """Which store client to build and its parameters."""

    type: str
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TransformConfig:
    """Named per-object transform and its parameters."""

    type: str
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AppConfig:
    """Top-level configuration for a streaming job."""

    bucket: str
    store: StoreClientConfig
    transform: Optional[TransformConfig] = None
    options: StreamOptions = field(default_factory=StreamOptions)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        if not data.get("bucket"):
            raise ValueError("AppConfig requires a 'bucket'")
        store = StoreClientConfig(**data.get("store", {"type": "s3"}))
        transform_data = data.get("transform")
        transform = TransformConfig(**transform_data) if transform_data else None
        options = StreamOptions(**data.get("options", {}))
        return cls(
            bucket=data["bucket"],
            store=store,
            transform=transform,
            options=options,
        )

    @classmethod
    def from_json(cls, path: Path) -> "AppConfig":
        data = json.loads(path.read_text())
        return cls.from_dict(data)
