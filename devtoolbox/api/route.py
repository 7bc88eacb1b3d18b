"""FastAPI routes for snippet storage, sharing and accounts."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Query, Request

from .model import (
    HealthResponse,
    PublicSnippetListResponse,
    SignUpRequest,
    SnippetCreateRequest,
    SnippetCreateResponse,
    SnippetEnvelope,
    SnippetListResponse,
    SuccessResponse,
    TokenRequest,
    TokenResponse,
    UserResponse,
)
from .service import SnippetService, bearer_token


def get_service(request: Request) -> SnippetService:
    service = getattr(request.app.state, "service", None)
    if not isinstance(service, SnippetService):
        raise RuntimeError("Snippet service has not been initialised")
    return service


def get_token(authorization: str | None = Header(None)) -> str | None:
    return bearer_token(authorization)


router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(service: SnippetService = Depends(get_service)) -> HealthResponse:
    return service.health()


@router.post("/snippets", response_model=SnippetCreateResponse)
async def create_snippet(
    payload: SnippetCreateRequest,
    token: str | None = Depends(get_token),
    service: SnippetService = Depends(get_service),
) -> SnippetCreateResponse:
    return await service.create_snippet(payload, token)


# Declared before /snippets/{snippet_id} so "public" is not taken as an id.
@router.get("/snippets/public/recent", response_model=PublicSnippetListResponse)
async def list_public_snippets(
    type: str | None = Query(None, description="Only return snippets of this type"),
    limit: str | None = Query(None, description="Maximum number of snippets to return"),
    service: SnippetService = Depends(get_service),
) -> PublicSnippetListResponse:
    return await service.list_public_snippets(type, limit)


@router.get("/snippets/{snippet_id}", response_model=SnippetEnvelope)
async def get_snippet(
    snippet_id: str,
    token: str | None = Depends(get_token),
    service: SnippetService = Depends(get_service),
) -> SnippetEnvelope:
    return await service.get_snippet(snippet_id, token)


@router.get("/share/{snippet_id}", response_model=SnippetEnvelope)
async def get_shared_snippet(
    snippet_id: str,
    token: str | None = Depends(get_token),
    service: SnippetService = Depends(get_service),
) -> SnippetEnvelope:
    """Resolve a share address through the regular read path."""
    return await service.get_snippet(snippet_id, token)


@router.delete("/snippets/{snippet_id}", response_model=SuccessResponse, response_model_exclude_none=True)
async def delete_snippet(
    snippet_id: str,
    token: str | None = Depends(get_token),
    service: SnippetService = Depends(get_service),
) -> SuccessResponse:
    return await service.delete_snippet(snippet_id, token)


@router.get("/user/snippets", response_model=SnippetListResponse)
async def list_own_snippets(
    token: str | None = Depends(get_token),
    service: SnippetService = Depends(get_service),
) -> SnippetListResponse:
    return await service.list_own_snippets(token)


@router.post("/auth/signup", response_model=SuccessResponse)
async def sign_up(
    payload: SignUpRequest,
    service: SnippetService = Depends(get_service),
) -> SuccessResponse:
    return await service.sign_up(payload)


@router.post("/auth/token", response_model=TokenResponse)
async def issue_token(
    payload: TokenRequest,
    service: SnippetService = Depends(get_service),
) -> TokenResponse:
    return await service.issue_token(payload)


@router.get("/auth/me", response_model=UserResponse)
async def current_user(
    token: str | None = Depends(get_token),
    service: SnippetService = Depends(get_service),
) -> UserResponse:
    return await service.current_user(token)


__all__ = ["get_service", "get_token", "router"]
