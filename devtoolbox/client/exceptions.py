"""
Exceptions raised by the snippet API client and local collection
"""

from __future__ import annotations


class SnippetClientError(Exception):
    """Base exception for client-side snippet errors"""
    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ValidationError(SnippetClientError):
    """Raised when the server rejects a request body (400)"""
    pass


class AuthenticationError(SnippetClientError):
    """Raised when a credential is missing, invalid or expired (401)"""
    pass


class ForbiddenError(SnippetClientError):
    """Raised when the snippet is private or not owned by the caller (403)"""
    pass


class NotFoundError(SnippetClientError):
    """Raised when the snippet does not exist (404)"""
    pass


class ConnectionError(SnippetClientError):
    """Raised when the server cannot be reached"""
    pass


class ImportFormatError(SnippetClientError):
    """Raised when an imported collection is not a JSON array of snippets"""
    pass
