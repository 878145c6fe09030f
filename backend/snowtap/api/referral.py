"""
SnowTap - Referral API

Список приглашённых друзей для экрана Friends.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models import User
from ..schemas import ReferralListResponse
from ..services.referrals import list_friends
from .auth import get_current_user


router = APIRouter(prefix="/referral", tags=["referral"])


@router.get("/list", response_model=ReferralListResponse)
async def get_referral_list(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Друзья, приглашённые пользователем, и его реферальный код."""
    return await list_friends(user, db)
