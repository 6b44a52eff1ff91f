"""Account collaborator: signup, login and bearer-token verification.

The link core only ever sees the ``owner_id`` this module hands out; it never
looks at passwords or tokens itself.

Flow Diagram — Authenticated Request
====================================
::
    ┌──────────────────────┐
    │ Authorization:       │
    │ Bearer <jwt>         │
    └──────────┬───────────┘
               ▼
    ┌──────────────────────┐
    │ decode_access_token  │──── bad / expired ──► 401 Unauthenticated
    └──────────┬───────────┘
               ▼
    ┌──────────────────────┐
    │ owner_id = int(sub)  │
    └──────────────────────┘

Key Behaviours
===============
- Passwords are stored as bcrypt hashes.
- Tokens are JWTs signed with ``JWT_SECRET``; ``sub`` carries the user id.
- Login failures never reveal whether the username exists.
"""

import datetime
import logging

import bcrypt
import jwt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shortlinks.config import Settings
from shortlinks.exceptions import AccountExists, StoreUnavailable, Unauthenticated
from shortlinks.models import User

__all__ = [
    "AccountService",
    "create_access_token",
    "decode_access_token",
    "hash_password",
    "verify_password",
]

logger = logging.getLogger("shortlinks.accounts")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user_id: int, settings: Settings) -> str:
    now = datetime.datetime.now(datetime.timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + datetime.timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str, settings: Settings) -> int:
    """Return the owner id carried by ``token`` or raise Unauthenticated."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise Unauthenticated("Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise Unauthenticated("Token is not valid") from exc

    subject = payload.get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError) as exc:
        raise Unauthenticated("Token is not valid") from exc


class AccountService:
    def __init__(self, session: AsyncSession, settings: Settings):
        self._session = session
        self._settings = settings

    async def signup(self, username: str, password: str) -> str:
        user = User(username=username, password_hash=hash_password(password))
        self._session.add(user)
        try:
            await self._session.commit()
        except IntegrityError as exc:
            await self._session.rollback()
            raise AccountExists() from exc
        except SQLAlchemyError as exc:
            logger.error(f"Account signup failed: {exc}")
            await self._session.rollback()
            raise StoreUnavailable() from exc
        await self._session.refresh(user)
        logger.info(f"Account created: {user.id}")
        return create_access_token(user.id, self._settings)

    async def login(self, username: str, password: str) -> str:
        user = await self._find_by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            raise Unauthenticated("Invalid credentials")
        return create_access_token(user.id, self._settings)

    async def get_user(self, user_id: int) -> User:
        try:
            user = await self._session.get(User, user_id)
        except SQLAlchemyError as exc:
            logger.error(f"Account lookup failed: {exc}")
            await self._session.rollback()
            raise StoreUnavailable() from exc
        if user is None:
            raise Unauthenticated("User not found")
        return user

    async def _find_by_username(self, username: str) -> User | None:
        try:
            result = await self._session.execute(select(User).where(User.username == username))
        except SQLAlchemyError as exc:
            logger.error(f"Account lookup failed: {exc}")
            await self._session.rollback()
            raise StoreUnavailable() from exc
        return result.scalar_one_or_none()
