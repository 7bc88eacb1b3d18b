from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

SNIPPET_TYPES = ("json", "regex", "uuid", "base64", "url", "hash", "custom")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def share_path(snippet_id: str) -> str:
    """Share address of a public snippet, derived from its id alone."""
    return f"/share/{snippet_id}"


class Snippet(BaseModel):
    """Stored text artifact with visibility and optional ownership."""

    id: str
    title: str
    content: str
    type: str
    is_public: bool = Field(False, alias="isPublic")
    owner_id: str | None = Field(
        None,
        validation_alias=AliasChoices("ownerId", "owner_id", "userId"),
        serialization_alias="ownerId",
    )
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def metadata(self) -> "SnippetMetadata":
        return SnippetMetadata(
            id=self.id,
            title=self.title,
            type=self.type,
            created_at=self.created_at,
        )


class SnippetMetadata(BaseModel):
    """Listing view of a snippet; never carries content."""

    id: str
    title: str
    type: str
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class LocalSnippet(BaseModel):
    """Device-only snippet keyed by a locally generated number."""

    id: int
    title: str
    content: str
    type: str = "custom"
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @property
    def owner_id(self) -> None:
        return None

    @property
    def is_public(self) -> bool:
        return False

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


__all__ = [
    "LocalSnippet",
    "SNIPPET_TYPES",
    "Snippet",
    "SnippetMetadata",
    "share_path",
    "utc_now",
]
