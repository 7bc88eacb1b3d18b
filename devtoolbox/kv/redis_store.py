"""Redis-backed implementation of the key-value store."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, List, Tuple

from redis import asyncio as aioredis

logger = logging.getLogger("devtoolbox")

_GLOB_CHARS = re.compile(r"([*?\[\]\\])")


class RedisKVStore:
    """Store JSON values in Redis under an optional key namespace."""

    def __init__(
        self,
        redis_client: aioredis.Redis,
        *,
        namespace: str = "",
        scan_count: int = 500,
    ) -> None:
        self.redis = redis_client
        self.namespace = namespace
        self.scan_count = scan_count

    @classmethod
    def from_url(cls, redis_url: str, *, namespace: str = "") -> "RedisKVStore":
        return cls(aioredis.Redis.from_url(redis_url), namespace=namespace)

    async def get(self, key: str) -> Any | None:
        raw = await self.redis.get(self._full_key(key))
        return self._decode(key, raw)

    async def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value, separators=(",", ":"))
        await self.redis.set(self._full_key(key), payload)

    async def delete(self, key: str) -> None:
        await self.redis.delete(self._full_key(key))

    async def scan_by_prefix(self, prefix: str) -> List[Tuple[str, Any]]:
        pattern = _GLOB_CHARS.sub(r"\\\1", self._full_key(prefix)) + "*"
        full_keys: list[str] = []
        async for raw_key in self.redis.scan_iter(match=pattern, count=self.scan_count):
            full_keys.append(raw_key.decode("utf-8") if isinstance(raw_key, bytes) else str(raw_key))

        if not full_keys:
            return []

        values = await self.redis.mget(full_keys)
        results: List[Tuple[str, Any]] = []
        for full_key, raw in zip(full_keys, values):
            key = full_key[len(self.namespace):]
            value = self._decode(key, raw)
            # deleted between SCAN and MGET
            if value is None:
                continue
            results.append((key, value))
        return results

    async def close(self) -> None:
        await self.redis.aclose()

    def _full_key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    @staticmethod
    def _decode(key: str, raw: Any) -> Any | None:
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            return json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            logger.warning("Ignoring undecodable value stored at %s", key)
            return None


__all__ = ["RedisKVStore"]
