"""Shared route dependencies."""

import redis.asyncio as aioredis
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from campaign_keeper.db.database import get_db
from campaign_keeper.db.redis import get_redis
from campaign_keeper.models.user import User
from campaign_keeper.services.auth_service import auth_service

bearer_scheme = HTTPBearer(auto_error=False)


async def get_access_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return credentials.credentials


async def get_current_user(
    token: str = Depends(get_access_token),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> User:
    user = await auth_service.resolve_session(db, redis, token)
    if user is None:
        raise HTTPException(status_code=401, detail="Session expired or invalid")
    return user
