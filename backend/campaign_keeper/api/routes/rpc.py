"""Server functions callable by name."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from campaign_keeper.api.deps import get_current_user
from campaign_keeper.db.database import get_db
from campaign_keeper.models.user import User
from campaign_keeper.schemas.auth import KnownUser
from campaign_keeper.services.table_service import table_service

router = APIRouter()


@router.post("/get_all_users", response_model=list[KnownUser])
async def get_all_users(
    user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
):
    """Every registered user, for picking campaign members."""
    return await table_service.list_known_users(db)
