"""Snippet storage and sharing service for the DevToolbox utility suite."""

from .kv import KVStore, MemoryKVStore, RedisKVStore
from .snippet import LocalSnippet, Snippet, SnippetMetadata, SnippetRepository

__all__ = [
    "KVStore",
    "LocalSnippet",
    "MemoryKVStore",
    "RedisKVStore",
    "Snippet",
    "SnippetMetadata",
    "SnippetRepository",
]
