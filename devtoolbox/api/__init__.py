"""HTTP API for the snippet service."""

from .server import create_app
from .service import ApiSettings, SnippetService

__all__ = ["ApiSettings", "SnippetService", "create_app"]
