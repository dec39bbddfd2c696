"""
Sequential adapter turning a sequence of object identifiers into one content stream.

Each identifier is resolved to a key, the object is opened through the store
client, optionally piped through a freshly built transform, and its output is
forwarded before the next identifier is pulled. At most one object stream is
open at any time, and nothing is read from the store until the consumer asks
for the next unit.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Iterable, Iterator, Optional

from .config import DEFAULT_CHUNK_SIZE, StreamOptions
from .errors import ContentStreamError, ForwardingError, InvalidIdentifier, UpstreamFetchError
from .interfaces import ContentTransform, ObjectStoreClient, TransformFactory
from .models import ObjectRequest, StreamState

logger = logging.getLogger(__name__)


def close_stream(stream: object) -> None:
    """Call ``stream.close()`` when the stream has one."""
    close = getattr(stream, "close", None)
    if callable(close):
        close()


def chain(source: Iterable[Any], transform: ContentTransform) -> Iterator[Any]:
    """
    Feed every unit of ``source`` through ``transform`` and yield its output.

    The transform's ``flush()`` output follows once ``source`` is exhausted.
    ``source`` is closed however the composition ends.
    """
    try:
        for chunk in source:
            yield from transform.transform(chunk)
        yield from transform.flush()
    finally:
        close_stream(source)


def _read_source(source: Iterable[Any], key: str) -> Iterator[Any]:
    """Yield the raw object stream, reporting read failures as upstream errors."""
    try:
        iterator = iter(source)
    except TypeError as exc:
        raise UpstreamFetchError(key, exc) from exc
    while True:
        try:
            chunk = next(iterator)
        except StopIteration:
            return
        except Exception as exc:
            raise UpstreamFetchError(key, exc) from exc
        yield chunk


def _record_key(identifier: Any) -> Any:
    if identifier is None:
        return None
    if isinstance(identifier, Mapping):
        return identifier.get("Key")
    return getattr(identifier, "Key", None)


class ObjectContentStream:
    """
    Iterator over the concatenated content of a sequence of remote objects.

    Identifiers are raw keys by default. With ``full_metadata`` enabled every
    identifier must be a record (mapping or object) exposing a non-empty string
    ``Key``, such as the ``Contents`` entries of an S3 listing, and output is
    forwarded in object mode.

    The stream has a single error channel: the first failure is raised from
    ``__next__`` and re-raised on every later call. Completion is never
    signalled after a failure. Not safe for concurrent use from several threads.
    """

    def __init__(
        self,
        identifiers: Iterable[Any],
        store_client: ObjectStoreClient,
        bucket: str,
        make_transform: Optional[TransformFactory] = None,
        options: Optional[StreamOptions] = None,
    ) -> None:
        if make_transform is not None and not callable(make_transform):
            raise TypeError("make_transform must be a callable returning a ContentTransform, or None")
        self._identifiers = identifiers
        self._store_client = store_client
        self._bucket = bucket
        self._make_transform = make_transform
        self._options = options or StreamOptions()

        self._state = StreamState.IDLE
        self._current: Any = None
        self._error: Optional[BaseException] = None
        self._objects_completed = 0
        self._units_forwarded = 0
        self._bytes_forwarded = 0
        self._units = self._run()

    @classmethod
    def from_options(
        cls,
        identifiers: Iterable[Any],
        store_client: ObjectStoreClient,
        bucket: str,
        make_transform: Optional[TransformFactory] = None,
        *,
        full_metadata: bool = False,
        object_mode: bool = False,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> "ObjectContentStream":
        options = StreamOptions(
            full_metadata=full_metadata,
            object_mode=object_mode,
            chunk_size=chunk_size,
        )
        return cls(identifiers, store_client, bucket, make_transform, options)

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def options(self) -> StreamOptions:
        return self._options

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def current_identifier(self) -> Any:
        return self._current

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def objects_completed(self) -> int:
        return self._objects_completed

    @property
    def units_forwarded(self) -> int:
        return self._units_forwarded

    @property
    def bytes_forwarded(self) -> int:
        return self._bytes_forwarded

    def resolve_key(self, identifier: Any) -> str:
        """Return the object key named by ``identifier``, validating records."""
        if self._options.full_metadata:
            key = _record_key(identifier)
            if not isinstance(key, str) or not key:
                raise InvalidIdentifier(identifier)
            return key
        if isinstance(identifier, (bytes, bytearray)):
            return bytes(identifier).decode("utf-8")
        return str(identifier)

    def __iter__(self) -> "ObjectContentStream":
        return self

    def __next__(self) -> Any:
        if self._error is not None:
            raise self._error
        try:
            return next(self._units)
        except StopIteration:
            if self._state is not StreamState.CLOSED and self._state is not StreamState.DONE:
                self._state = StreamState.DONE
                logger.info(
                    "Content stream for bucket %s finished: %d objects, %d units, %d bytes",
                    self._bucket,
                    self._objects_completed,
                    self._units_forwarded,
                    self._bytes_forwarded,
                )
            raise
        except Exception as exc:
            self._fail(exc)
            raise

    def close(self) -> None:
        """Release the in-flight object stream, if any. Idempotent."""
        self._units.close()
        if self._state not in (StreamState.DONE, StreamState.FAILED, StreamState.CLOSED):
            self._state = StreamState.CLOSED
            logger.debug("Content stream for bucket %s closed", self._bucket)

    def __enter__(self) -> "ObjectContentStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _run(self) -> Iterator[Any]:
        for identifier in self._identifiers:
            yield from self._process(identifier)

    def _process(self, identifier: Any) -> Iterator[Any]:
        self._current = identifier
        key = self.resolve_key(identifier)
        request = ObjectRequest(bucket=self._bucket, key=key)

        self._state = StreamState.FETCHING
        logger.debug("Fetching object %s from bucket %s", request.key, request.bucket)
        try:
            source = self._store_client.fetch_object_stream(request.bucket, request.key)
        except Exception as exc:
            raise UpstreamFetchError(key, exc) from exc

        effective: Optional[Iterator[Any]] = None
        try:
            effective = self._open_effective_stream(source, identifier, key)
            self._state = StreamState.FORWARDING
            for unit in effective:
                unit = self._coerce(unit)
                self._units_forwarded += 1
                if isinstance(unit, bytes):
                    self._bytes_forwarded += len(unit)
                yield unit
        except ContentStreamError:
            raise
        except Exception as exc:
            raise ForwardingError(key, exc) from exc
        finally:
            if effective is not None:
                effective.close()
            close_stream(source)

        self._objects_completed += 1
        self._state = StreamState.IDLE
        logger.debug("Finished object %s", key)

    def _open_effective_stream(self, source: Iterable[Any], identifier: Any, key: str) -> Iterator[Any]:
        raw = _read_source(source, key)
        if self._make_transform is None:
            return raw
        transform = self._make_transform(identifier)
        return chain(raw, transform)

    def _coerce(self, unit: Any) -> Any:
        if self._options.object_mode:
            return unit
        if isinstance(unit, bytes):
            return unit
        if isinstance(unit, str):
            return unit.encode("utf-8")
        if isinstance(unit, (bytearray, memoryview)):
            return bytes(unit)
        raise TypeError(
            f"Invalid data unit of type {type(unit).__name__}: byte-mode streams forward bytes or str only"
        )

    def _fail(self, exc: BaseException) -> None:
        self._error = exc
        self._state = StreamState.FAILED
        key = getattr(exc, "key", None)
        logger.error(
            "Content stream for bucket %s failed on %r: %s",
            self._bucket,
            key if key is not None else self._current,
            exc,
        )
