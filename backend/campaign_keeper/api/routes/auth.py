"""Auth endpoints - password accounts, sessions and magic links."""

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from campaign_keeper.api.deps import get_access_token, get_current_user
from campaign_keeper.db.database import get_db
from campaign_keeper.db.redis import get_redis
from campaign_keeper.models.user import User
from campaign_keeper.schemas.auth import (
    AuthSession,
    Credentials,
    Identity,
    MagicLinkRequest,
    MagicLinkVerify,
)
from campaign_keeper.services.auth_service import AuthError, auth_service
from campaign_keeper.services.mail_service import MagicLinkMailer, MailDeliveryError, get_mailer

router = APIRouter()


@router.post("/signup", response_model=AuthSession)
async def sign_up(
    data: Credentials,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
):
    """Register a password account and open a session for it."""
    try:
        return await auth_service.sign_up(db, redis, data.email, data.password)
    except AuthError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.post("/token", response_model=AuthSession)
async def sign_in(
    data: Credentials,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
):
    try:
        return await auth_service.sign_in(db, redis, data.email, data.password)
    except AuthError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.post("/logout", status_code=204)
async def sign_out(
    token: str = Depends(get_access_token),
    redis: aioredis.Redis = Depends(get_redis),
):
    await auth_service.sign_out(redis, token)


@router.get("/user", response_model=Identity)
async def get_user(user: User = Depends(get_current_user)):
    """Identity behind the bearer token, including its metadata."""
    return Identity.model_validate(user)


@router.post("/otp")
async def send_magic_link(
    data: MagicLinkRequest,
    redis: aioredis.Redis = Depends(get_redis),
    mailer: MagicLinkMailer = Depends(get_mailer),
):
    """Issue a magic link for ``email`` and hand it to the mailer."""
    link = await auth_service.issue_magic_link(redis, data.email, data.redirect_to, data.data)
    try:
        await mailer.send(data.email, link, data.data)
    except MailDeliveryError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return {"message": f"Magic link sent to {data.email}"}


@router.post("/verify", response_model=AuthSession)
async def verify_magic_link(
    data: MagicLinkVerify,
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
):
    """Exchange a magic-link token for a session."""
    try:
        return await auth_service.verify_magic_link(db, redis, data.token)
    except AuthError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
