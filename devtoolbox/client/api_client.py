"""
HTTP client for the snippet service
"""

from __future__ import annotations

from typing import Any

import requests

from .exceptions import (
    AuthenticationError,
    ConnectionError,
    ForbiddenError,
    NotFoundError,
    SnippetClientError,
    ValidationError,
)

_STATUS_ERRORS = {
    400: ValidationError,
    401: AuthenticationError,
    403: ForbiddenError,
    404: NotFoundError,
}


class SnippetApiClient:
    """Thin wrapper over the snippet HTTP API"""

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8000",
        anon_key: str | None = None,
        timeout: float = 30,
        session: requests.Session | None = None,
    ):
        """
        Initialize the client

        Args:
            base_url: Server base URL
            anon_key: Public client key sent when no credential is held
            timeout: Per-request timeout in seconds
            session: Optional pre-configured requests session
        """
        self.base_url = base_url.rstrip('/')
        self.anon_key = anon_key
        self.timeout = timeout
        self.session = session or requests.Session()
        self.access_token: str | None = None

    # Credentials --------------------------------------------------------------

    def set_token(self, token: str | None) -> None:
        self.access_token = token

    @property
    def has_credential(self) -> bool:
        return bool(self.access_token)

    def _headers(self, *, with_user_token: bool = True) -> dict[str, str]:
        token = (self.access_token if with_user_token else None) or self.anon_key
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    # Transport ----------------------------------------------------------------

    def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """
        Make an HTTP request and return the decoded JSON body

        Raises:
            SnippetClientError: On API error
        """
        url = f"{self.base_url}{endpoint}"
        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json,
                headers=self._headers() if headers is None else headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            raise ConnectionError("Request timeout", status_code=408)
        except requests.exceptions.ConnectionError as e:
            raise ConnectionError(f"Connection failed: {str(e)}", status_code=503)
        except requests.exceptions.RequestException as e:
            raise SnippetClientError(f"Request failed: {str(e)}")

        if response.status_code >= 400:
            self._handle_error(response)

        try:
            return response.json()
        except ValueError:
            raise SnippetClientError("Invalid response from server", status_code=response.status_code)

    def _handle_error(self, response: requests.Response) -> None:
        try:
            message = response.json().get("error") or response.reason
        except ValueError:
            message = response.text or response.reason
        error_class = _STATUS_ERRORS.get(response.status_code, SnippetClientError)
        raise error_class(message, status_code=response.status_code)

    # Snippets -----------------------------------------------------------------

    def save_snippet(self, title: str, content: str, type: str, is_public: bool = False) -> dict[str, Any]:
        result = self._request(
            "POST",
            "/snippets",
            json={"title": title, "content": content, "type": type, "isPublic": is_public},
        )
        return result["snippet"]

    def get_snippet(self, snippet_id: str) -> dict[str, Any]:
        return self._request("GET", f"/snippets/{snippet_id}")["snippet"]

    def get_user_snippets(self) -> list[dict[str, Any]]:
        return self._request("GET", "/user/snippets").get("snippets") or []

    def delete_snippet(self, snippet_id: str) -> None:
        self._request("DELETE", f"/snippets/{snippet_id}")

    def get_public_snippets(self, type: str | None = None, limit: int = 20) -> list[dict[str, Any]]:
        params: dict[str, Any] = {}
        if type:
            params["type"] = type
        if limit:
            params["limit"] = limit
        # public listing never carries the user's credential
        result = self._request(
            "GET",
            "/snippets/public/recent",
            params=params,
            headers=self._headers(with_user_token=False),
        )
        return result.get("snippets") or []

    def share_url(self, snippet_id: str) -> str:
        return f"{self.base_url}/share/{snippet_id}"

    # Accounts -----------------------------------------------------------------

    def sign_up(self, email: str, password: str, name: str) -> dict[str, Any]:
        return self._request(
            "POST",
            "/auth/signup",
            json={"email": email, "password": password, "name": name},
        )

    def sign_in(self, email: str, password: str) -> dict[str, Any]:
        result = self._request("POST", "/auth/token", json={"email": email, "password": password})
        self.access_token = result["accessToken"]
        return result

    def current_user(self) -> dict[str, Any]:
        return self._request("GET", "/auth/me")["user"]

    def health(self) -> dict[str, Any]:
        return self._request("GET", "/health")
