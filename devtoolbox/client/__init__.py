"""Client-side snippet storage: local collection, API client and sync layer."""

from .api_client import SnippetApiClient
from .events import AuthStateChanged, EventChannel
from .exceptions import (
    AuthenticationError,
    ConnectionError,
    ForbiddenError,
    ImportFormatError,
    NotFoundError,
    SnippetClientError,
    ValidationError,
)
from .local_store import LOCAL_COLLECTION_KEY, LocalSnippetCollection, LocalStorage
from .sync import MODE_CLOUD, MODE_LOCAL, MODE_PUBLIC, SnippetSync

__all__ = [
    "AuthStateChanged",
    "AuthenticationError",
    "ConnectionError",
    "EventChannel",
    "ForbiddenError",
    "ImportFormatError",
    "LOCAL_COLLECTION_KEY",
    "LocalSnippetCollection",
    "LocalStorage",
    "MODE_CLOUD",
    "MODE_LOCAL",
    "MODE_PUBLIC",
    "NotFoundError",
    "SnippetApiClient",
    "SnippetClientError",
    "SnippetSync",
    "ValidationError",
]
