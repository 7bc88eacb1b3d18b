"""Device-local persistence for anonymous snippets."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from datetime import datetime
from pathlib import Path
from typing import Any, List

from pydantic import ValidationError as ModelValidationError

from ..snippet import LocalSnippet
from ..snippet.model import utc_now
from .exceptions import ImportFormatError

logger = logging.getLogger("devtoolbox")

LOCAL_COLLECTION_KEY = "devtoolbox-snippets"


class LocalStorage:
    """JSON file holding a key -> value mapping, the client's local storage."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path).expanduser()

    def get_item(self, key: str) -> Any | None:
        return self._read().get(key)

    def set_item(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except json.JSONDecodeError:
            logger.warning("Local storage %s is corrupt; starting empty", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".storage-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise


class LocalSnippetCollection:
    """Ordered (newest first) collection of device-only snippets."""

    def __init__(self, storage: LocalStorage, *, key: str = LOCAL_COLLECTION_KEY) -> None:
        self.storage = storage
        self.key = key
        self._snippets: List[LocalSnippet] = []
        self.load()

    def load(self) -> List[LocalSnippet]:
        raw = self.storage.get_item(self.key) or []
        snippets: List[LocalSnippet] = []
        for record in raw if isinstance(raw, list) else []:
            try:
                snippets.append(LocalSnippet.model_validate(record))
            except ModelValidationError:
                logger.warning("Skipping malformed local snippet: %r", record)
        self._snippets = snippets
        return self.all()

    def all(self) -> List[LocalSnippet]:
        return list(self._snippets)

    def add(self, title: str, content: str, type: str = "custom", *, created_at: datetime | None = None) -> LocalSnippet:
        snippet = LocalSnippet(
            id=self._next_id(),
            title=title,
            content=content,
            type=type,
            created_at=created_at or utc_now(),
        )
        self._save([snippet, *self._snippets])
        return snippet

    def delete(self, snippet_id: int) -> bool:
        remaining = [snippet for snippet in self._snippets if snippet.id != snippet_id]
        if len(remaining) == len(self._snippets):
            return False
        self._save(remaining)
        return True

    def export_json(self) -> str:
        return json.dumps([snippet.to_record() for snippet in self._snippets], indent=2, ensure_ascii=False)

    def import_json(self, document: str) -> int:
        """Prepend every record of ``document`` to the collection; returns the count."""
        try:
            raw = json.loads(document)
        except json.JSONDecodeError as exc:
            raise ImportFormatError("Invalid file format") from exc
        if not isinstance(raw, list):
            raise ImportFormatError("Invalid file format")
        try:
            imported = [LocalSnippet.model_validate(record) for record in raw]
        except ModelValidationError as exc:
            raise ImportFormatError("Invalid file format") from exc

        self._save([*imported, *self._snippets])
        return len(imported)

    def _next_id(self) -> int:
        candidate = int(time.time() * 1000)
        existing = {snippet.id for snippet in self._snippets}
        while candidate in existing:
            candidate += 1
        return candidate

    def _save(self, snippets: List[LocalSnippet]) -> None:
        self.storage.set_item(self.key, [snippet.to_record() for snippet in snippets])
        self._snippets = snippets

    def __len__(self) -> int:
        return len(self._snippets)


__all__ = ["LOCAL_COLLECTION_KEY", "LocalSnippetCollection", "LocalStorage"]
