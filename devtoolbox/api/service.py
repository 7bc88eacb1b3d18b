"""Service layer: authorization decisions over the snippet repository."""

from __future__ import annotations

import logging
import os
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone

from ..exception_handler import (
    ForbiddenError,
    NotFoundError,
    SnippetError,
    UnauthorizedError,
    UpstreamError,
    ValidationError,
)
from ..identity import IdentityError, IdentityProvider, InvalidCredentialsError, User
from ..snippet import Snippet, SnippetRepository, share_path
from .model import (
    HealthResponse,
    PublicSnippetListResponse,
    SignUpRequest,
    SnippetCreateRequest,
    SnippetCreateResponse,
    SnippetEnvelope,
    SnippetListResponse,
    SnippetMetadataResponse,
    SnippetResponse,
    SuccessResponse,
    TokenRequest,
    TokenResponse,
    UserResponse,
)

logger = logging.getLogger("devtoolbox")


@dataclass(slots=True)
class ApiSettings:
    """Runtime configuration for the API server."""

    kv_backend: str
    redis_url: str
    kv_namespace: str
    jwt_secret: str
    jwt_algorithm: str
    access_token_expire_minutes: int
    anon_key: str | None
    share_base_url: str
    public_list_default_limit: int
    public_list_max_limit: int
    mcp_enabled: bool
    log_level: str

    @classmethod
    def from_env(cls) -> "ApiSettings":
        def _int_env(name: str, default: int) -> int:
            raw = os.getenv(name)
            if not raw:
                return default
            try:
                return int(raw)
            except ValueError:
                logger.warning("Invalid integer for %s: %s", name, raw)
                return default

        def _bool_env(name: str, default: bool) -> bool:
            raw = os.getenv(name)
            if not raw:
                return default
            return raw.strip().lower() in {"1", "true", "yes", "on"}

        jwt_secret = os.getenv("JWT_SECRET")
        if not jwt_secret:
            logger.warning("JWT_SECRET is not set; credentials will not survive a restart")
            jwt_secret = secrets.token_urlsafe(32)

        return cls(
            kv_backend=os.getenv("KV_BACKEND", "redis").strip().lower(),
            redis_url=os.getenv("REDIS_URL", "redis://127.0.0.1:6379/0"),
            kv_namespace=os.getenv("KV_NAMESPACE", ""),
            jwt_secret=jwt_secret,
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            access_token_expire_minutes=_int_env("ACCESS_TOKEN_EXPIRE_MINUTES", 7 * 24 * 60),
            anon_key=os.getenv("ANON_KEY") or None,
            share_base_url=os.getenv("SHARE_BASE_URL", "").rstrip("/"),
            public_list_default_limit=_int_env("PUBLIC_LIST_DEFAULT_LIMIT", 20),
            public_list_max_limit=_int_env("PUBLIC_LIST_MAX_LIMIT", 100),
            mcp_enabled=_bool_env("MCP_ENABLED", True),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


class SnippetService:
    """Stateless request handlers over an injected repository and identity provider."""

    def __init__(
        self,
        repository: SnippetRepository,
        identity: IdentityProvider,
        settings: ApiSettings,
    ) -> None:
        self.repository = repository
        self.identity = identity
        self.settings = settings

    # Snippets ----------------------------------------------------------------

    async def create_snippet(self, payload: SnippetCreateRequest, token: str | None) -> SnippetCreateResponse:
        missing = [
            name
            for name in ("title", "content", "type")
            if not (getattr(payload, name) or "").strip()
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        owner_id = await self._optional_principal(token)
        is_public = payload.is_public
        if is_public and owner_id is None:
            logger.warning("Anonymous snippet requested public visibility; storing as private")
            is_public = False

        try:
            snippet = await self.repository.create(
                title=payload.title,
                content=payload.content,
                type=payload.type,
                is_public=is_public,
                owner_id=owner_id,
            )
        except SnippetError:
            raise
        except Exception as exc:
            logger.exception("Failed to save snippet")
            raise UpstreamError("Failed to save snippet") from exc

        return SnippetCreateResponse(snippet=self._to_response(snippet, with_share_url=True))

    async def get_snippet(self, snippet_id: str, token: str | None) -> SnippetEnvelope:
        try:
            snippet = await self.repository.find(snippet_id)
        except Exception as exc:
            logger.exception("Failed to fetch snippet %s", snippet_id)
            raise UpstreamError("Failed to fetch snippet") from exc

        if snippet is None:
            raise NotFoundError()

        if not snippet.is_public:
            requester_id = await self._optional_principal(token)
            if requester_id is None or requester_id != snippet.owner_id:
                raise ForbiddenError()

        return SnippetEnvelope(snippet=self._to_response(snippet))

    async def list_own_snippets(self, token: str | None) -> SnippetListResponse:
        owner_id = await self._required_principal(token)
        try:
            snippets = await self.repository.list_by_owner(owner_id)
        except Exception as exc:
            logger.exception("Failed to fetch snippets for %s", owner_id)
            raise UpstreamError("Failed to fetch snippets") from exc
        return SnippetListResponse(snippets=[self._to_response(snippet) for snippet in snippets])

    async def delete_snippet(self, snippet_id: str, token: str | None) -> SuccessResponse:
        requester_id = await self._required_principal(token)
        try:
            await self.repository.delete(snippet_id, requester_id)
        except SnippetError:
            raise
        except Exception as exc:
            logger.exception("Failed to delete snippet %s", snippet_id)
            raise UpstreamError("Failed to delete snippet") from exc
        return SuccessResponse()

    async def list_public_snippets(
        self,
        type_filter: str | None = None,
        limit: int | str | None = None,
    ) -> PublicSnippetListResponse:
        """Metadata of recent public snippets; an unusable ``limit`` falls back to the default."""
        limit = self._public_limit(limit)

        try:
            metadata = await self.repository.list_public(type_filter=type_filter or None, limit=limit)
        except Exception as exc:
            logger.exception("Failed to fetch public snippets")
            raise UpstreamError("Failed to fetch public snippets") from exc
        return PublicSnippetListResponse(
            snippets=[SnippetMetadataResponse.from_metadata(item) for item in metadata]
        )

    # Accounts ----------------------------------------------------------------

    async def sign_up(self, payload: SignUpRequest) -> SuccessResponse:
        if not payload.email or not payload.password:
            raise ValidationError("Email and password are required")
        try:
            await self.identity.create_account(payload.email, payload.password, payload.name or "")
        except IdentityError as exc:
            logger.info("Sign-up rejected: %s", exc.message)
            raise ValidationError(exc.message) from exc
        except Exception as exc:
            logger.exception("Sign-up failed")
            raise UpstreamError("Failed to create account") from exc
        return SuccessResponse(message="Account created successfully! You can now sign in.")

    async def issue_token(self, payload: TokenRequest) -> TokenResponse:
        if not payload.email or not payload.password:
            raise ValidationError("Email and password are required")
        try:
            token = await self.identity.issue_credential(payload.email, payload.password)
            principal_id = await self.identity.validate_credential(token)
            user = await self.identity.get_user(principal_id) if principal_id else None
        except InvalidCredentialsError as exc:
            raise UnauthorizedError(exc.message) from exc
        except IdentityError as exc:
            raise ValidationError(exc.message) from exc
        except Exception as exc:
            logger.exception("Sign-in failed")
            raise UpstreamError("Failed to sign in") from exc

        if user is None:
            raise UnauthorizedError("Invalid authentication")
        return TokenResponse(access_token=token, user=user)

    async def current_user(self, token: str | None) -> UserResponse:
        principal_id = await self._required_principal(token)
        user = await self._lookup_user(principal_id)
        if user is None:
            raise UnauthorizedError("Invalid authentication")
        return UserResponse(user=user)

    def health(self) -> HealthResponse:
        return HealthResponse(status="ok", timestamp=datetime.now(timezone.utc).isoformat())

    # Helpers -----------------------------------------------------------------

    def share_url(self, snippet_id: str) -> str:
        return f"{self.settings.share_base_url}{share_path(snippet_id)}"

    def _to_response(self, snippet: Snippet, *, with_share_url: bool = False) -> SnippetResponse:
        share_url = self.share_url(snippet.id) if with_share_url and snippet.is_public else None
        return SnippetResponse.from_snippet(snippet, share_url=share_url)

    def _public_limit(self, raw: int | str | None) -> int:
        limit = self.settings.public_list_default_limit
        if raw is not None and str(raw).strip():
            try:
                limit = int(raw)
            except (TypeError, ValueError):
                logger.debug("Ignoring non-numeric public listing limit %r", raw)
        return max(1, min(limit, self.settings.public_list_max_limit))

    def _is_anonymous(self, token: str | None) -> bool:
        return not token or (self.settings.anon_key is not None and token == self.settings.anon_key)

    async def _optional_principal(self, token: str | None) -> str | None:
        """Resolve a credential, treating any failure as anonymous."""
        if self._is_anonymous(token):
            return None
        try:
            return await self.identity.validate_credential(token)
        except Exception:
            logger.debug("Credential validation failed; continuing anonymously", exc_info=True)
            return None

    async def _required_principal(self, token: str | None) -> str:
        if self._is_anonymous(token):
            raise UnauthorizedError("Authentication required")
        try:
            principal_id = await self.identity.validate_credential(token)
        except Exception as exc:
            logger.exception("Credential validation failed")
            raise UpstreamError("Failed to validate credential") from exc
        if not principal_id:
            raise UnauthorizedError("Invalid authentication")
        return principal_id

    async def _lookup_user(self, principal_id: str) -> User | None:
        try:
            return await self.identity.get_user(principal_id)
        except Exception as exc:
            logger.exception("Failed to load user %s", principal_id)
            raise UpstreamError("Failed to load user") from exc


__all__ = ["ApiSettings", "SnippetService", "bearer_token"]
