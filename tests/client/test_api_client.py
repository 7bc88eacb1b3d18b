import pytest
import requests

from devtoolbox.client import (
    AuthenticationError,
    ConnectionError,
    ForbiddenError,
    NotFoundError,
    SnippetApiClient,
    SnippetClientError,
    ValidationError,
)


class _StubResponse:
    def __init__(self, status_code=200, body=None, reason="OK"):
        self.status_code = status_code
        self._body = body
        self.reason = reason
        self.text = "" if body is None else str(body)

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body


class _StubSession:
    def __init__(self, *responses, error=None):
        self.responses = list(responses)
        self.error = error
        self.calls = []

    def request(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)


def _make_client(*responses, error=None, anon_key=None):
    session = _StubSession(*responses, error=error)
    client = SnippetApiClient("http://toolbox.test/", anon_key=anon_key, session=session)
    return client, session


def test_sign_in_stores_token_and_authorizes_later_requests():
    client, session = _make_client(
        _StubResponse(body={"accessToken": "jwt-token", "tokenType": "bearer", "user": {"id": "u1"}}),
        _StubResponse(body={"snippets": [{"id": "s1"}]}),
    )

    client.sign_in("dev@example.com", "hunter22")
    snippets = client.get_user_snippets()

    assert client.has_credential
    assert snippets == [{"id": "s1"}]
    assert session.calls[0]["url"] == "http://toolbox.test/auth/token"
    assert session.calls[1]["headers"] == {"Authorization": "Bearer jwt-token"}


def test_anon_key_is_sent_only_without_user_token():
    client, session = _make_client(
        _StubResponse(body={"success": True, "snippet": {"id": "s1"}}),
        _StubResponse(body={"success": True, "snippet": {"id": "s2"}}),
        anon_key="anon",
    )

    client.save_snippet("t", "c", "json")
    client.set_token("user-token")
    client.save_snippet("t", "c", "json", is_public=True)

    assert session.calls[0]["headers"] == {"Authorization": "Bearer anon"}
    assert session.calls[1]["headers"] == {"Authorization": "Bearer user-token"}
    assert session.calls[1]["json"] == {"title": "t", "content": "c", "type": "json", "isPublic": True}


def test_public_listing_never_sends_user_token():
    client, session = _make_client(_StubResponse(body={"snippets": []}))
    client.set_token("user-token")

    client.get_public_snippets(type="regex", limit=5)

    assert session.calls[0]["headers"] == {}
    assert session.calls[0]["params"] == {"type": "regex", "limit": 5}
    assert client.access_token == "user-token"


@pytest.mark.parametrize(
    "status,error_class",
    [
        (400, ValidationError),
        (401, AuthenticationError),
        (403, ForbiddenError),
        (404, NotFoundError),
        (500, SnippetClientError),
    ],
)
def test_error_status_maps_to_exception(status, error_class):
    client, _ = _make_client(_StubResponse(status, {"error": "server said no"}, reason="Nope"))

    with pytest.raises(error_class) as excinfo:
        client.get_snippet("s1")

    assert excinfo.value.message == "server said no"
    assert excinfo.value.status_code == status


def test_error_without_json_body_uses_reason():
    client, _ = _make_client(_StubResponse(502, None, reason="Bad Gateway"))

    with pytest.raises(SnippetClientError) as excinfo:
        client.health()

    assert excinfo.value.message == "Bad Gateway"


def test_transport_failures_are_connection_errors():
    client, _ = _make_client(error=requests.exceptions.ConnectionError("refused"))

    with pytest.raises(ConnectionError) as excinfo:
        client.health()

    assert excinfo.value.status_code == 503


def test_share_url_uses_base_url():
    client, _ = _make_client()

    assert client.share_url("abc") == "http://toolbox.test/share/abc"


def test_public_listing_leaves_user_token_in_place_while_in_flight():
    seen_tokens = []

    class _ObservingSession(_StubSession):
        def request(self, **kwargs):
            seen_tokens.append(client.access_token)
            return super().request(**kwargs)

    session = _ObservingSession(_StubResponse(body={"snippets": []}))
    client = SnippetApiClient("http://toolbox.test", anon_key="anon", session=session)
    client.set_token("user-token")

    client.get_public_snippets()

    assert seen_tokens == ["user-token"]
    assert session.calls[0]["headers"] == {"Authorization": "Bearer anon"}
