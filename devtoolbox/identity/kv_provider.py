"""Reference identity provider storing accounts in the KV store.

Passwords are hashed with Argon2 through passlib; credentials are signed JWTs
whose ``sub`` claim is the principal id.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable

from jose import JWTError, jwt
from passlib.context import CryptContext

from ..kv import KeyedLock, KVStore
from .provider import IdentityError, InvalidCredentialsError, User

logger = logging.getLogger("devtoolbox")

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

MIN_PASSWORD_LENGTH = 6
DEFAULT_NAME = "Developer"


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


def normalize_email(email: str) -> str:
    return email.strip().lower()


class KVIdentityProvider:
    """Accounts at ``user:{id}`` with an email lookup at ``user_email:{email}``."""

    USER_PREFIX = "user:"
    EMAIL_PREFIX = "user_email:"

    def __init__(
        self,
        kv: KVStore,
        *,
        secret_key: str,
        algorithm: str = "HS256",
        token_ttl: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.kv = kv
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.token_ttl = token_ttl
        self._clock = clock
        self._locks = KeyedLock()

    async def create_account(self, email: str, password: str, name: str) -> str:
        normalized = normalize_email(email or "")
        if not normalized or "@" not in normalized:
            raise IdentityError("A valid email address is required")
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise IdentityError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters")

        email_key = f"{self.EMAIL_PREFIX}{normalized}"
        async with self._locks.hold(email_key):
            if await self.kv.get(email_key) is not None:
                raise IdentityError("A user with this email address has already been registered")

            user_id = str(uuid.uuid4())
            record = {
                "id": user_id,
                "email": normalized,
                "name": (name or "").strip() or DEFAULT_NAME,
                "password_hash": get_password_hash(password),
                # no email verification step
                "confirmed": True,
                "created_at": self._clock().isoformat(),
            }
            await self.kv.set(f"{self.USER_PREFIX}{user_id}", record)
            await self.kv.set(email_key, user_id)

        logger.info("Created account %s", user_id)
        return user_id

    async def issue_credential(self, email: str, password: str) -> str:
        normalized = normalize_email(email or "")
        user_id = await self.kv.get(f"{self.EMAIL_PREFIX}{normalized}") if normalized else None
        record = await self.kv.get(f"{self.USER_PREFIX}{user_id}") if user_id else None
        if not record or not verify_password(password or "", record.get("password_hash", "")):
            raise InvalidCredentialsError("Invalid login credentials")

        return self.create_access_token(str(record["id"]))

    def create_access_token(self, principal_id: str, expires_delta: timedelta | None = None) -> str:
        issued_at = self._clock()
        expire = issued_at + (expires_delta if expires_delta is not None else self.token_ttl)
        claims = {
            "sub": principal_id,
            "iat": int(issued_at.timestamp()),
            "exp": int(expire.timestamp()),
        }
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    async def validate_credential(self, token: str) -> str | None:
        if not token:
            return None
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            logger.debug("Rejected credential", exc_info=True)
            return None

        principal_id = payload.get("sub")
        if not principal_id:
            return None
        # account may have been removed after the token was issued
        if await self.kv.get(f"{self.USER_PREFIX}{principal_id}") is None:
            return None
        return str(principal_id)

    async def get_user(self, principal_id: str) -> User | None:
        record = await self.kv.get(f"{self.USER_PREFIX}{principal_id}")
        if not record:
            return None
        return User(id=record["id"], email=record["email"], name=record.get("name") or DEFAULT_NAME)


__all__ = [
    "KVIdentityProvider",
    "get_password_hash",
    "normalize_email",
    "verify_password",
]
