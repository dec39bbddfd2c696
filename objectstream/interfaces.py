"""Interface definitions for store clients and per-object transforms."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable


class ObjectStoreClient(ABC):
    """A client able to open a readable stream for one remote object."""

    @abstractmethod
    def fetch_object_stream(self, bucket: str, key: str) -> Iterable[bytes]:
        """Return an iterable over the object's content.

        May raise immediately (e.g. object not found) or return a stream that
        raises while it is being read. If the returned object has a ``close()``
        method it is called once the stream is no longer needed.
        """


class ContentTransform(ABC):
    """Per-object transform fed with the object's chunks, one at a time."""

    @abstractmethod
    def transform(self, chunk: Any) -> Iterable[Any]:
        """Consume one chunk and return zero or more output units."""

    def flush(self) -> Iterable[Any]:
        """Return any units still pending once the object has been fully read."""
        return ()


TransformFactory = Callable[[Any], ContentTransform]
