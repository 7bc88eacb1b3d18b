"""Key-value persistence primitive and in-process helpers."""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Protocol, Tuple


class KVStore(Protocol):
    """Durable mapping from string keys to JSON-compatible values."""

    async def get(self, key: str) -> Any | None:
        ...

    async def set(self, key: str, value: Any) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def scan_by_prefix(self, prefix: str) -> List[Tuple[str, Any]]:
        ...

    async def close(self) -> None:
        ...


class MemoryKVStore:
    """Process-local store for tests and development runs.

    Values pass through JSON on every write and read, so callers never share
    mutable objects with the store and non-serializable values fail the same
    way they would against Redis.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Any | None:
        await asyncio.sleep(0)
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        await asyncio.sleep(0)
        self._data[key] = json.dumps(value, separators=(",", ":"))

    async def delete(self, key: str) -> None:
        await asyncio.sleep(0)
        self._data.pop(key, None)

    async def scan_by_prefix(self, prefix: str) -> List[Tuple[str, Any]]:
        await asyncio.sleep(0)
        return [
            (key, json.loads(raw))
            for key, raw in list(self._data.items())
            if key.startswith(prefix)
        ]

    async def close(self) -> None:
        return None

    def __len__(self) -> int:
        return len(self._data)


class KeyedLock:
    """Registry of asyncio locks keyed by name.

    Serializes read-modify-write cycles on a single KV key within one process.
    An entry is dropped once nobody holds or awaits it.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._waiters[key] - 1
            if remaining:
                self._waiters[key] = remaining
            else:
                del self._waiters[key]
                del self._locks[key]

    def __contains__(self, key: str) -> bool:
        return key in self._locks


__all__ = ["KVStore", "KeyedLock", "MemoryKVStore"]
