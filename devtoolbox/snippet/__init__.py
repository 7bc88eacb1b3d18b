"""Snippet data model and KV-backed repository."""

from .model import LocalSnippet, SNIPPET_TYPES, Snippet, SnippetMetadata, share_path
from .repository import SnippetRepository

__all__ = [
    "LocalSnippet",
    "SNIPPET_TYPES",
    "Snippet",
    "SnippetMetadata",
    "SnippetRepository",
    "share_path",
]
