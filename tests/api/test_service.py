import pytest

from devtoolbox.api import ApiSettings, SnippetService
from devtoolbox.api.model import SignUpRequest, SnippetCreateRequest
from devtoolbox.api.service import bearer_token
from devtoolbox.exception_handler import UnauthorizedError, UpstreamError, ValidationError
from devtoolbox.identity import IdentityError
from devtoolbox.kv import MemoryKVStore
from devtoolbox.snippet import SnippetRepository


class _FailingKV(MemoryKVStore):
    async def set(self, key, value):
        raise ConnectionError("redis is down")

    async def get(self, key):
        raise ConnectionError("redis is down")


class _StubIdentity:
    def __init__(self, tokens=None, *, fail=False, signup_error=None):
        self.tokens = tokens or {}
        self.fail = fail
        self.signup_error = signup_error
        self.accounts = []

    async def validate_credential(self, token):
        if self.fail:
            raise RuntimeError("identity provider unavailable")
        return self.tokens.get(token)

    async def issue_credential(self, email, password):  # pragma: no cover - unused
        raise NotImplementedError

    async def create_account(self, email, password, name):
        if self.signup_error:
            raise self.signup_error
        self.accounts.append((email, name))
        return "new-user"

    async def get_user(self, principal_id):  # pragma: no cover - unused
        return None


def _make_settings() -> ApiSettings:
    return ApiSettings(
        kv_backend="memory",
        redis_url="redis://127.0.0.1:6379/0",
        kv_namespace="",
        jwt_secret="test-secret",
        jwt_algorithm="HS256",
        access_token_expire_minutes=60,
        anon_key=None,
        share_base_url="",
        public_list_default_limit=20,
        public_list_max_limit=100,
        mcp_enabled=False,
        log_level="WARNING",
    )


def _make_service(kv=None, identity=None) -> SnippetService:
    return SnippetService(
        SnippetRepository(kv if kv is not None else MemoryKVStore()),
        identity or _StubIdentity({"alice-token": "alice"}),
        _make_settings(),
    )


def _payload(**fields) -> SnippetCreateRequest:
    values = {"title": "t", "content": "c", "type": "custom"}
    values.update(fields)
    return SnippetCreateRequest(**values)


@pytest.mark.parametrize(
    "header,expected",
    [
        (None, None),
        ("", None),
        ("Bearer abc", "abc"),
        ("bearer   abc ", "abc"),
        ("Basic abc", None),
        ("Bearer", None),
    ],
)
def test_bearer_token_parsing(header, expected):
    assert bearer_token(header) == expected


@pytest.mark.asyncio
async def test_storage_failure_on_create_is_reported_generically():
    service = _make_service(kv=_FailingKV())

    with pytest.raises(UpstreamError) as excinfo:
        await service.create_snippet(_payload(), None)

    assert excinfo.value.message == "Failed to save snippet"
    assert "redis" not in excinfo.value.message


@pytest.mark.asyncio
async def test_storage_failure_on_read_and_list_is_upstream_error():
    service = _make_service(kv=_FailingKV())

    with pytest.raises(UpstreamError):
        await service.get_snippet("some-id", None)
    with pytest.raises(UpstreamError):
        await service.list_public_snippets()
    with pytest.raises(UpstreamError):
        await service.list_own_snippets("alice-token")


@pytest.mark.asyncio
async def test_validation_happens_before_any_storage_call():
    service = _make_service(kv=_FailingKV())

    with pytest.raises(ValidationError):
        await service.create_snippet(_payload(title=""), None)


@pytest.mark.asyncio
async def test_identity_outage_degrades_create_to_anonymous():
    service = _make_service(identity=_StubIdentity(fail=True))

    response = await service.create_snippet(_payload(is_public=True), "alice-token")

    assert response.snippet.owner_id is None
    assert response.snippet.is_public is False


@pytest.mark.asyncio
async def test_identity_outage_on_required_credential_is_upstream_error():
    service = _make_service(identity=_StubIdentity(fail=True))

    with pytest.raises(UpstreamError):
        await service.list_own_snippets("alice-token")


@pytest.mark.asyncio
async def test_owner_create_keeps_visibility_and_share_url():
    service = _make_service()

    response = await service.create_snippet(_payload(is_public=True), "alice-token")

    assert response.snippet.owner_id == "alice"
    assert response.snippet.share_url == f"/share/{response.snippet.id}"


@pytest.mark.asyncio
async def test_unknown_token_on_required_path_is_unauthorized():
    service = _make_service()

    with pytest.raises(UnauthorizedError) as excinfo:
        await service.delete_snippet("anything", "unknown-token")

    assert excinfo.value.message == "Invalid authentication"


@pytest.mark.asyncio
async def test_sign_up_passes_provider_message_through():
    identity = _StubIdentity(signup_error=IdentityError("Password should be at least 6 characters"))
    service = _make_service(identity=identity)

    with pytest.raises(ValidationError) as excinfo:
        await service.sign_up(SignUpRequest(email="dev@example.com", password="123"))

    assert excinfo.value.message == "Password should be at least 6 characters"


@pytest.mark.asyncio
async def test_sign_up_delegates_to_provider():
    identity = _StubIdentity()
    service = _make_service(identity=identity)

    response = await service.sign_up(SignUpRequest(email="dev@example.com", password="hunter22", name="Dev"))

    assert response.success is True
    assert identity.accounts == [("dev@example.com", "Dev")]


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("KV_BACKEND", "Memory")
    monkeypatch.setenv("JWT_SECRET", "s3cret")
    monkeypatch.setenv("PUBLIC_LIST_MAX_LIMIT", "not-a-number")
    monkeypatch.setenv("SHARE_BASE_URL", "https://toolbox.example/")
    monkeypatch.setenv("MCP_ENABLED", "false")
    monkeypatch.delenv("ANON_KEY", raising=False)

    settings = ApiSettings.from_env()

    assert settings.kv_backend == "memory"
    assert settings.jwt_secret == "s3cret"
    assert settings.public_list_max_limit == 100
    assert settings.share_base_url == "https://toolbox.example"
    assert settings.mcp_enabled is False
    assert settings.anon_key is None
