"""Auth service - password accounts, bearer sessions and magic links.

Access tokens and magic-link tokens are opaque random strings kept in Redis
with a TTL. A magic-link token can be redeemed exactly once; redeeming it
creates the user if needed and merges the metadata attached at issue time
into ``user_metadata`` (this is how campaign invitations travel).
"""

import hashlib
import hmac
import logging
import secrets
from urllib.parse import urljoin

import redis.asyncio as aioredis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campaign_keeper.config import settings
from campaign_keeper.db.database import utcnow
from campaign_keeper.db.redis import MAGIC_LINK_PREFIX, SESSION_PREFIX, get_json, pop_json, put_json
from campaign_keeper.models.user import Profile, User
from campaign_keeper.schemas.auth import AuthSession, Identity

logger = logging.getLogger(__name__)

HASH_ITERATIONS = 260_000


class AuthError(Exception):
    """Sign-up / sign-in / link redemption rejected."""


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", (password + settings.SECRET_KEY).encode(), salt.encode(), HASH_ITERATIONS
    )
    return f"pbkdf2_sha256${HASH_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, stored: str | None) -> bool:
    if not stored:
        return False
    try:
        _, iterations, salt, expected = stored.split("$")
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", (password + settings.SECRET_KEY).encode(), salt.encode(), int(iterations)
    )
    return hmac.compare_digest(digest.hex(), expected)


def build_magic_link(token: str, redirect_to: str | None) -> str:
    """Absolute link carrying the token in the fragment, like ``#access_token=...``."""
    target = urljoin(settings.SITE_URL.rstrip("/") + "/", (redirect_to or "/").lstrip("/"))
    return f"{target}#access_token={token}&type=magiclink"


class AuthService:
    @staticmethod
    async def _get_user_by_email(db: AsyncSession, email: str) -> User | None:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    @staticmethod
    async def _create_user(
        db: AsyncSession, email: str, password: str | None = None, metadata: dict | None = None
    ) -> User:
        user = User(
            email=email,
            password_hash=hash_password(password) if password else None,
            user_metadata=dict(metadata or {}),
        )
        db.add(user)
        await db.flush()
        db.add(Profile(id=user.id, username=email.split("@")[0], email=email))
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def _open_session(redis: aioredis.Redis, user: User) -> AuthSession:
        token = secrets.token_urlsafe(32)
        await put_json(redis, SESSION_PREFIX + token, {"user_id": user.id}, settings.SESSION_TTL)
        user.last_sign_in_at = utcnow()
        return AuthSession(
            access_token=token,
            expires_in=settings.SESSION_TTL,
            user=Identity.model_validate(user),
        )

    @staticmethod
    async def sign_up(
        db: AsyncSession, redis: aioredis.Redis, email: str, password: str
    ) -> AuthSession:
        email = email.strip().lower()
        if len(password) < settings.MIN_PASSWORD_LENGTH:
            raise AuthError(
                f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters"
            )
        existing = await AuthService._get_user_by_email(db, email)
        if existing is not None:
            raise AuthError("User already registered")

        user = await AuthService._create_user(db, email, password)
        logger.info("Registered user %s", user.id)
        return await AuthService._open_session(redis, user)

    @staticmethod
    async def sign_in(
        db: AsyncSession, redis: aioredis.Redis, email: str, password: str
    ) -> AuthSession:
        user = await AuthService._get_user_by_email(db, email.strip().lower())
        if user is None or not verify_password(password, user.password_hash):
            raise AuthError("Invalid login credentials")
        session = await AuthService._open_session(redis, user)
        await db.flush()
        return session

    @staticmethod
    async def sign_out(redis: aioredis.Redis, token: str) -> None:
        await redis.delete(SESSION_PREFIX + token)

    @staticmethod
    async def resolve_session(
        db: AsyncSession, redis: aioredis.Redis, token: str
    ) -> User | None:
        """Return the user behind an access token, or None if expired/unknown."""
        data = await get_json(redis, SESSION_PREFIX + token)
        if data is None:
            return None
        return await db.get(User, data["user_id"])

    @staticmethod
    async def issue_magic_link(
        redis: aioredis.Redis, email: str, redirect_to: str | None, data: dict
    ) -> str:
        token = secrets.token_urlsafe(32)
        await put_json(
            redis,
            MAGIC_LINK_PREFIX + token,
            {"email": email.strip().lower(), "data": data},
            settings.MAGIC_LINK_TTL,
        )
        return build_magic_link(token, redirect_to)

    @staticmethod
    async def verify_magic_link(
        db: AsyncSession, redis: aioredis.Redis, token: str
    ) -> AuthSession:
        pending = await pop_json(redis, MAGIC_LINK_PREFIX + token)
        if pending is None:
            raise AuthError("Magic link is invalid or has expired")

        user = await AuthService._get_user_by_email(db, pending["email"])
        if user is None:
            user = await AuthService._create_user(db, pending["email"], metadata=pending["data"])
            logger.info("Created user %s from magic link", user.id)
        elif pending["data"]:
            user.user_metadata = {**(user.user_metadata or {}), **pending["data"]}

        session = await AuthService._open_session(redis, user)
        await db.flush()
        return session


auth_service = AuthService()
