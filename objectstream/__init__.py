"""Stream the content of a sequence of object-store objects as one continuous stream."""

from .config import AppConfig, StreamOptions
from .errors import ContentStreamError, ForwardingError, InvalidIdentifier, UpstreamFetchError
from .interfaces import ContentTransform, ObjectStoreClient
from .pipeline import StreamPipeline
from .stream import ObjectContentStream, chain

__all__ = [
    "AppConfig",
    "ContentStreamError",
    "ContentTransform",
    "ForwardingError",
    "InvalidIdentifier",
    "ObjectContentStream",
    "ObjectStoreClient",
    "StreamOptions",
    "StreamPipeline",
    "UpstreamFetchError",
    "chain",
]
