"""Pydantic models for the public API surface."""

from __future__ import annotations

from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field

from ..identity import User
from ..snippet import Snippet, SnippetMetadata


class SnippetCreateRequest(BaseModel):
    # Required fields are checked by the service so that a missing field is
    # reported as a 400 with the field name rather than a 422.
    title: str | None = Field(None, description="Display title")
    content: str | None = Field(None, description="Stored text artifact")
    type: str | None = Field(None, description="Classification tag, e.g. json or regex")
    is_public: bool = Field(False, alias="isPublic", description="Expose via share URL")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SignUpRequest(BaseModel):
    email: str | None = None
    password: str | None = None
    name: str | None = None


class TokenRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class SnippetResponse(BaseModel):
    id: str
    title: str
    content: str
    type: str
    is_public: bool = Field(alias="isPublic")
    owner_id: str | None = Field(None, alias="ownerId")
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")
    share_url: str | None = Field(None, alias="shareUrl")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_snippet(cls, snippet: Snippet, *, share_url: str | None = None) -> "SnippetResponse":
        record = snippet.to_record()
        return cls(**record, shareUrl=share_url)


class SnippetMetadataResponse(BaseModel):
    id: str
    title: str
    type: str
    created_at: str = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_metadata(cls, metadata: SnippetMetadata) -> "SnippetMetadataResponse":
        return cls(**metadata.to_record())


class SnippetCreateResponse(BaseModel):
    success: bool = True
    snippet: SnippetResponse


class SnippetEnvelope(BaseModel):
    snippet: SnippetResponse


class SnippetListResponse(BaseModel):
    snippets: List[SnippetResponse]


class PublicSnippetListResponse(BaseModel):
    snippets: List[SnippetMetadataResponse]


class SuccessResponse(BaseModel):
    success: bool = True
    message: str | None = None


class TokenResponse(BaseModel):
    access_token: str = Field(alias="accessToken")
    token_type: str = Field("bearer", alias="tokenType")
    user: User

    model_config = ConfigDict(populate_by_name=True)


class UserResponse(BaseModel):
    user: User


class HealthResponse(BaseModel):
    status: str
    timestamp: str


def dump(model: BaseModel) -> dict[str, Any]:
    """Serialize a response model with its wire (camelCase) field names."""
    return model.model_dump(mode="json", by_alias=True, exclude_none=False)


__all__ = [
    "HealthResponse",
    "PublicSnippetListResponse",
    "SignUpRequest",
    "SnippetCreateRequest",
    "SnippetCreateResponse",
    "SnippetEnvelope",
    "SnippetListResponse",
    "SnippetMetadataResponse",
    "SnippetResponse",
    "SuccessResponse",
    "TokenRequest",
    "TokenResponse",
    "UserResponse",
    "dump",
]
