from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel


class User(BaseModel):
    id: str
    email: str
    name: str


class IdentityError(Exception):
    """Identity provider rejected a request; the message is safe to show."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidCredentialsError(IdentityError):
    pass


class IdentityProvider(Protocol):
    """Capability the snippet service consumes from the identity backend."""

    async def validate_credential(self, token: str) -> str | None:
        """Return the principal id for ``token``, or ``None`` if invalid or expired."""
        ...

    async def issue_credential(self, email: str, password: str) -> str:
        ...

    async def create_account(self, email: str, password: str, name: str) -> str:
        ...

    async def get_user(self, principal_id: str) -> User | None:
        ...


__all__ = ["IdentityError", "IdentityProvider", "InvalidCredentialsError", "User"]
