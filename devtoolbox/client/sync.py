"""Client sync layer: routes saves to the local or cloud collection."""

from __future__ import annotations

import logging
from typing import Callable, List, Sequence, Union

import pyperclip

from ..identity import User
from ..snippet import LocalSnippet, Snippet, SnippetMetadata
from .api_client import SnippetApiClient
from .events import AuthStateChanged, EventChannel
from .exceptions import SnippetClientError
from .local_store import LocalSnippetCollection

logger = logging.getLogger("devtoolbox")

MODE_LOCAL = "local"
MODE_CLOUD = "cloud"
MODE_PUBLIC = "public"
MODES = (MODE_LOCAL, MODE_CLOUD, MODE_PUBLIC)

ViewItem = Union[LocalSnippet, Snippet, SnippetMetadata]


def _log_notification(message: str) -> None:
    logger.info(message)


class SnippetSync:
    """Keeps the local, cloud and public views and decides where saves go.

    Local and cloud collections are never merged: signing in does not upload
    earlier local snippets.
    """

    def __init__(
        self,
        api: SnippetApiClient,
        local: LocalSnippetCollection,
        *,
        clipboard: Callable[[str], None] = pyperclip.copy,
        notify: Callable[[str], None] = _log_notification,
        auth_events: EventChannel[AuthStateChanged] | None = None,
    ) -> None:
        self.api = api
        self.local = local
        self.clipboard = clipboard
        self.notify = notify
        self.auth_events = auth_events or EventChannel()
        self.mode = MODE_LOCAL
        self.user: User | None = None
        self.cloud: List[Snippet] = []
        self.public: List[SnippetMetadata] = []
        self._unsubscribe = self.auth_events.subscribe(self._on_auth_state)

    # Auth ---------------------------------------------------------------------

    @property
    def signed_in(self) -> bool:
        return self.user is not None and self.api.has_credential

    def sign_in(self, email: str, password: str) -> User:
        result = self.api.sign_in(email, password)
        user = User.model_validate(result["user"])
        self.auth_events.publish(AuthStateChanged(user))
        self.notify("Signed in successfully!")
        return user

    def sign_up(self, email: str, password: str, name: str) -> None:
        """Create an account; the caller still has to sign in afterwards."""
        self.api.sign_up(email, password, name)
        self.notify("Account created! Please sign in.")

    def sign_out(self) -> None:
        self.api.set_token(None)
        self.auth_events.publish(AuthStateChanged(None))
        self.notify("Signed out successfully!")

    def _on_auth_state(self, event: AuthStateChanged) -> None:
        self.user = event.user
        if event.user is None:
            self.cloud = []
            if self.mode == MODE_CLOUD:
                self.mode = MODE_LOCAL

    # Views --------------------------------------------------------------------

    def set_mode(self, mode: str) -> None:
        if mode not in MODES:
            raise ValueError(f"Unknown view mode: {mode}")
        self.mode = mode
        if mode == MODE_CLOUD and self.signed_in:
            self.refresh_cloud()
        elif mode == MODE_PUBLIC:
            self.refresh_public()

    def refresh_cloud(self) -> List[Snippet]:
        if not self.signed_in:
            self.cloud = []
            return []
        try:
            records = self.api.get_user_snippets()
        except SnippetClientError as exc:
            logger.warning("Failed to load cloud snippets: %s", exc.message)
            self.notify("Failed to load cloud snippets")
            return self.cloud
        self.cloud = [Snippet.model_validate(record) for record in records]
        return self.cloud

    def refresh_public(self, type: str | None = None, limit: int = 20) -> List[SnippetMetadata]:
        try:
            records = self.api.get_public_snippets(type=type, limit=limit)
        except SnippetClientError as exc:
            logger.warning("Failed to load public snippets: %s", exc.message)
            self.notify("Failed to load public snippets")
            return self.public
        self.public = [SnippetMetadata.model_validate(record) for record in records]
        return self.public

    def view(self, search: str = "", type: str | None = None) -> List[ViewItem]:
        """Filter the active view by free text and type."""
        items: Sequence[ViewItem]
        if self.mode == MODE_CLOUD:
            items = self.cloud
        elif self.mode == MODE_PUBLIC:
            items = self.public
        else:
            items = self.local.all()
        return [item for item in items if _matches(item, search, type)]

    def types(self) -> List[str]:
        seen: List[str] = []
        for item in [*self.local.all(), *self.cloud]:
            if item.type not in seen:
                seen.append(item.type)
        return ["all", *seen]

    # Mutations ----------------------------------------------------------------

    def save(
        self,
        title: str,
        content: str,
        type: str = "custom",
        is_public: bool = False,
    ) -> LocalSnippet | Snippet | None:
        if not title.strip() or not content.strip():
            self.notify("Please fill in both title and content")
            return None

        if not self.signed_in:
            snippet = self.local.add(title, content, type)
            self.notify("Snippet saved locally!")
            return snippet

        try:
            record = self.api.save_snippet(title, content, type, is_public=is_public)
        except SnippetClientError as exc:
            logger.warning("Failed to save snippet to cloud: %s", exc.message)
            self.notify("Failed to save snippet to cloud")
            return None

        saved = Snippet.model_validate(record)
        self.cloud = [saved, *self.cloud]
        if saved.is_public:
            self._copy_share_url(saved.id)
        else:
            self.notify("Snippet saved to cloud!")
        return saved

    def delete(self, snippet_id: int | str) -> bool:
        if self.mode == MODE_PUBLIC:
            self.notify("Public snippets are read-only")
            return False

        if self.mode == MODE_LOCAL:
            try:
                local_id = int(snippet_id)
            except (TypeError, ValueError):
                return False
            deleted = self.local.delete(local_id)
            if deleted:
                self.notify("Snippet deleted!")
            return deleted

        try:
            self.api.delete_snippet(str(snippet_id))
        except SnippetClientError as exc:
            logger.warning("Failed to delete snippet %s: %s", snippet_id, exc.message)
            self.notify("Failed to delete snippet")
            return False
        self.cloud = [snippet for snippet in self.cloud if snippet.id != snippet_id]
        self.notify("Snippet deleted!")
        return True

    def share(self, snippet_id: str) -> str:
        return self._copy_share_url(snippet_id)

    def _copy_share_url(self, snippet_id: str) -> str:
        url = self.api.share_url(snippet_id)
        try:
            self.clipboard(url)
        except Exception as exc:
            logger.warning("Clipboard write failed: %s", exc)
            self.notify(f"Snippet shared! Link: {url}")
        else:
            self.notify("Snippet saved and shared! Link copied to clipboard.")
        return url

    def close(self) -> None:
        self._unsubscribe()


def _matches(item: ViewItem, search: str, type: str | None) -> bool:
    if type and type != "all" and item.type != type:
        return False
    if not search:
        return True
    needle = search.lower()
    if needle in item.title.lower():
        return True
    content = getattr(item, "content", None)
    return bool(content) and needle in content.lower()


__all__ = ["MODES", "MODE_CLOUD", "MODE_LOCAL", "MODE_PUBLIC", "SnippetSync"]
