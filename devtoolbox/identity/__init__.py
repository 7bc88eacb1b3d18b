"""Identity provider capability and the bundled KV-backed implementation."""

from .kv_provider import KVIdentityProvider
from .provider import IdentityError, IdentityProvider, InvalidCredentialsError, User

__all__ = [
    "IdentityError",
    "IdentityProvider",
    "InvalidCredentialsError",
    "KVIdentityProvider",
    "User",
]
