"""KV-backed snippet persistence with ownership and visibility indexes."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable, Iterable, List, Sequence

from pydantic import ValidationError as ModelValidationError

from ..exception_handler import ForbiddenError, NotFoundError, ValidationError
from ..kv import KeyedLock, KVStore
from .model import Snippet, SnippetMetadata, utc_now

logger = logging.getLogger("devtoolbox")

DEFAULT_PUBLIC_LIMIT = 20


class SnippetRepository:
    """CRUD over ``snippet:{id}`` records plus owner and public indexes.

    Record and index writes are separate KV calls. A crash between them leaves
    either an orphaned record (still fetchable by id) or a ghost index entry;
    listings drop ghosts and prune them from the index.
    """

    SNIPPET_PREFIX = "snippet:"
    OWNER_INDEX_PREFIX = "user_snippets:"
    PUBLIC_INDEX_KEY = "public_snippets"

    def __init__(
        self,
        kv: KVStore,
        *,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] | None = None,
        locks: KeyedLock | None = None,
    ) -> None:
        self.kv = kv
        self._clock = clock
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._locks = locks or KeyedLock()

    async def create(
        self,
        title: str,
        content: str,
        type: str,
        is_public: bool = False,
        owner_id: str | None = None,
    ) -> Snippet:
        _require_fields(title=title, content=content, type=type)

        now = self._clock()
        snippet = Snippet(
            id=self._id_factory(),
            title=title,
            content=content,
            type=type,
            is_public=bool(is_public),
            owner_id=owner_id,
            created_at=now,
            updated_at=now,
        )

        await self.kv.set(self._record_key(snippet.id), snippet.to_record())

        if owner_id:
            owner_key = self._owner_key(owner_id)
            async with self._locks.hold(owner_key):
                ids = await self._read_id_list(owner_key)
                ids.append(snippet.id)
                await self.kv.set(owner_key, ids)

        if snippet.is_public:
            async with self._locks.hold(self.PUBLIC_INDEX_KEY):
                ids = await self._read_id_list(self.PUBLIC_INDEX_KEY)
                ids.insert(0, snippet.id)
                await self.kv.set(self.PUBLIC_INDEX_KEY, ids)

        logger.info("Created snippet %s (type=%s, public=%s)", snippet.id, snippet.type, snippet.is_public)
        return snippet

    async def find(self, snippet_id: str) -> Snippet | None:
        if not snippet_id:
            return None
        raw = await self.kv.get(self._record_key(snippet_id))
        if raw is None:
            return None
        try:
            return Snippet.model_validate(raw)
        except ModelValidationError:
            logger.warning("Ignoring malformed snippet record %s", snippet_id)
            return None

    async def get_by_id(self, snippet_id: str) -> Snippet:
        snippet = await self.find(snippet_id)
        if snippet is None:
            raise NotFoundError()
        return snippet

    async def list_by_owner(self, owner_id: str) -> List[Snippet]:
        owner_key = self._owner_key(owner_id)
        ids = await self._read_id_list(owner_key)

        snippets: List[Snippet] = []
        ghosts: list[str] = []
        for snippet_id in ids:
            snippet = await self.find(snippet_id)
            if snippet is None:
                ghosts.append(snippet_id)
                continue
            if snippet.owner_id != owner_id:
                logger.warning("Owner index %s references foreign snippet %s", owner_id, snippet_id)
                continue
            snippets.append(snippet)

        if ghosts:
            logger.warning("Owner index %s references %d missing snippets", owner_id, len(ghosts))
            await self._prune(owner_key, ghosts)

        snippets.sort(key=lambda item: item.created_at, reverse=True)
        return snippets

    async def list_public(
        self,
        type_filter: str | None = None,
        limit: int = DEFAULT_PUBLIC_LIMIT,
    ) -> List[SnippetMetadata]:
        if limit <= 0:
            return []

        ids = await self._read_id_list(self.PUBLIC_INDEX_KEY)
        matches: List[Snippet] = []
        stale: list[str] = []
        for snippet_id in ids:
            snippet = await self.find(snippet_id)
            if snippet is None or not snippet.is_public:
                stale.append(snippet_id)
                continue
            if type_filter and snippet.type != type_filter:
                continue
            matches.append(snippet)

        if stale:
            logger.warning("Public index references %d missing snippets", len(stale))
            await self._prune(self.PUBLIC_INDEX_KEY, stale)

        matches.sort(key=lambda item: item.created_at, reverse=True)
        return [snippet.metadata() for snippet in matches[:limit]]

    async def delete(self, snippet_id: str, requester_id: str | None) -> None:
        snippet = await self.get_by_id(snippet_id)
        if snippet.owner_id is None or snippet.owner_id != requester_id:
            raise ForbiddenError()

        await self.kv.delete(self._record_key(snippet_id))
        await self._prune(self._owner_key(snippet.owner_id), [snippet_id])
        if snippet.is_public:
            await self._prune(self.PUBLIC_INDEX_KEY, [snippet_id])
        logger.info("Deleted snippet %s", snippet_id)

    async def rebuild_public_index(self) -> int:
        """Rebuild the public index from a full record scan."""
        return await self._write_public_index(await self._scan_snippets())

    async def rebuild_owner_index(self, owner_id: str) -> int:
        return await self._write_owner_index(owner_id, await self._scan_snippets())

    async def repair_indexes(self) -> int:
        """Find records no index points at, log them and rebuild the affected indexes.

        Returns the number of missing index entries that were restored.
        """
        snippets = await self._scan_snippets()
        repaired = 0

        owners = sorted({s.owner_id for s in snippets if s.owner_id})
        for owner_id in owners:
            indexed = set(await self._read_id_list(self._owner_key(owner_id)))
            missing = [s.id for s in snippets if s.owner_id == owner_id and s.id not in indexed]
            if missing:
                logger.warning(
                    "Owner index %s is missing %d snippets: %s", owner_id, len(missing), ", ".join(missing)
                )
                await self._write_owner_index(owner_id, snippets)
                repaired += len(missing)

        indexed_public = set(await self._read_id_list(self.PUBLIC_INDEX_KEY))
        missing_public = [s.id for s in snippets if s.is_public and s.id not in indexed_public]
        if missing_public:
            logger.warning(
                "Public index is missing %d snippets: %s", len(missing_public), ", ".join(missing_public)
            )
            await self._write_public_index(snippets)
            repaired += len(missing_public)

        logger.info("Index repair scanned %d snippets, restored %d entries", len(snippets), repaired)
        return repaired

    async def _write_public_index(self, snippets: List[Snippet]) -> int:
        public = [s for s in snippets if s.is_public]
        public.sort(key=lambda item: item.created_at, reverse=True)
        async with self._locks.hold(self.PUBLIC_INDEX_KEY):
            await self.kv.set(self.PUBLIC_INDEX_KEY, [s.id for s in public])
        return len(public)

    async def _write_owner_index(self, owner_id: str, snippets: List[Snippet]) -> int:
        owned = [s for s in snippets if s.owner_id == owner_id]
        owned.sort(key=lambda item: item.created_at)
        owner_key = self._owner_key(owner_id)
        async with self._locks.hold(owner_key):
            await self.kv.set(owner_key, [s.id for s in owned])
        return len(owned)

    async def _scan_snippets(self) -> List[Snippet]:
        snippets: List[Snippet] = []
        for key, raw in await self.kv.scan_by_prefix(self.SNIPPET_PREFIX):
            try:
                snippets.append(Snippet.model_validate(raw))
            except ModelValidationError:
                logger.warning("Ignoring malformed snippet record at %s", key)
        return snippets

    async def _prune(self, index_key: str, removed: Iterable[str]) -> None:
        drop = set(removed)
        async with self._locks.hold(index_key):
            ids = await self._read_id_list(index_key)
            kept = [snippet_id for snippet_id in ids if snippet_id not in drop]
            if len(kept) != len(ids):
                await self.kv.set(index_key, kept)

    async def _read_id_list(self, key: str) -> list[str]:
        raw = await self.kv.get(key)
        if not raw:
            return []
        if not isinstance(raw, list):
            logger.warning("Index %s holds a non-list value; treating as empty", key)
            return []
        return [str(item) for item in raw]

    def _record_key(self, snippet_id: str) -> str:
        return f"{self.SNIPPET_PREFIX}{snippet_id}"

    def _owner_key(self, owner_id: str) -> str:
        return f"{self.OWNER_INDEX_PREFIX}{owner_id}"


def _require_fields(**fields: str) -> None:
    missing: Sequence[str] = [
        name for name, value in fields.items() if not isinstance(value, str) or not value.strip()
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


__all__ = ["DEFAULT_PUBLIC_LIMIT", "SnippetRepository"]
