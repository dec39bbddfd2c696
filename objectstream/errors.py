"""Error taxonomy raised through the content stream's single error channel."""

from __future__ import annotations

from typing import Optional


class ContentStreamError(Exception):
    """Base class for every terminal error raised by the content stream."""


class InvalidIdentifier(ContentStreamError):
    """An identifier in full-metadata mode is not a record with a string ``Key``."""

    MESSAGE = 'Invalid identifier: the given identifier is not a record with a "Key" field (string)'

    def __init__(self, identifier: object) -> None:
        super().__init__(self.MESSAGE)
        self.identifier = identifier


class _WrappedError(ContentStreamError):
    """Carries the original exception unchanged; the message is copied verbatim."""

    def __init__(self, key: Optional[str], original: BaseException) -> None:
        super().__init__(str(original))
        self.key = key
        self.original = original


class UpstreamFetchError(_WrappedError):
    """The store client failed to open or stream an object."""


class ForwardingError(_WrappedError):
    """The effective (possibly transformed) stream failed while producing data."""
