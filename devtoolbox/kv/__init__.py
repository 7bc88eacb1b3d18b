"""Key-value persistence backends."""

from .redis_store import RedisKVStore
from .store import KeyedLock, KVStore, MemoryKVStore

__all__ = ["KVStore", "KeyedLock", "MemoryKVStore", "RedisKVStore"]
