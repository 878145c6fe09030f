"""
SnowTap - Game API

Майнер (claim / upgrade) и награды за друзей.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..models import User
from ..schemas import (
    MiningStatusResponse, UpgradeResponse, ClaimResponse,
    RefClaimRequest, RefClaimResponse,
)
from ..middleware.security import limiter
from ..services import mining
from ..services.referrals import claim_referral_reward
from .auth import get_current_user


router = APIRouter(prefix="/game", tags=["game"])


# ============================================
# MINER
# ============================================

@router.get("/earnings", response_model=MiningStatusResponse)
async def get_earnings(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Баланс, уровень майнера и доступность клейма."""
    earnings = await mining.load_earnings(db, user.id)
    return MiningStatusResponse(**mining.describe(earnings, mining.utcnow()))


@router.post("/upgrade", response_model=UpgradeResponse)
@limiter.limit(f"{settings.RATE_LIMIT_GAME}/minute")
async def upgrade_miner(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Апгрейд майнера на следующий уровень.
    Стоимость списывается с tap_score.
    """
    earnings = await mining.upgrade(db, user.id)
    await db.commit()

    return UpgradeResponse(
        miner_level=earnings.miner_level,
        score=earnings.tap_score,
    )


@router.post("/claim", response_model=ClaimResponse)
@limiter.limit(f"{settings.RATE_LIMIT_GAME}/minute")
async def claim_miner(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Забрать добычу майнера.
    Один раз за 3-часовое окно (batch) UTC.
    """
    earnings = await mining.claim(db, user.id)
    await db.commit()

    return ClaimResponse(
        last_mine_date=earnings.last_mine_date,
        score=earnings.tap_score,
    )


# ============================================
# REFERRAL REWARD
# ============================================

@router.post("/refclaim", response_model=RefClaimResponse)
@limiter.limit(f"{settings.RATE_LIMIT_GAME}/minute")
async def claim_friend_reward(
    request: Request,
    payload: RefClaimRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Забрать награду за приглашённого друга."""
    response = await claim_referral_reward(user, payload.friendID, payload.refCode, db)
    await db.commit()
    return response
