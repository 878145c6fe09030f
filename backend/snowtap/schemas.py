"""
SnowTap - Pydantic Schemas

Все схемы валидации в одном файле.
"""

from datetime import datetime, timezone
from typing import Optional, List
from pydantic import BaseModel, Field, field_serializer


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive UTC из БД → aware UTC (сериализуется с 'Z')."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


# ============================================
# AUTH
# ============================================

class TelegramAuthRequest(BaseModel):
    """Запрос авторизации через Telegram."""
    init_data: str


class AuthResponse(BaseModel):
    """Ответ авторизации."""
    token: str
    user: dict


# ============================================
# GAME - MINING
# ============================================

class MiningStatusResponse(BaseModel):
    """Состояние майнера."""
    tap_score: int
    miner_level: int
    last_mine_date: Optional[datetime] = None
    current_batch: int
    can_claim: bool
    claim_reward: Optional[int] = None
    claim_reward_label: Optional[str] = None
    next_level: Optional[int] = None
    upgrade_cost: Optional[int] = None
    upgrade_cost_label: Optional[str] = None
    next_claim_at: Optional[datetime] = None

    @field_serializer("last_mine_date", "next_claim_at")
    def serialize_dates(self, value: Optional[datetime]):
        return _as_utc(value)


class MeResponse(BaseModel):
    """Текущий пользователь + заработок."""
    user: dict
    earnings: MiningStatusResponse


class UpgradeResponse(BaseModel):
    """Ответ апгрейда майнера."""
    statusCode: int = 200
    status: str = "success"
    miner_level: int
    score: int
    message: str = "Successfully upgraded"


class ClaimResponse(BaseModel):
    """Ответ клейма майнера."""
    statusCode: int = 200
    status: str = "success"
    last_mine_date: datetime
    score: int
    message: str = "Successfully claimed"

    @field_serializer("last_mine_date")
    def serialize_last_mine_date(self, value: datetime):
        return _as_utc(value)


class ErrorResponse(BaseModel):
    """Ответ общего обработчика ошибок наград."""
    statusCode: int = 400
    status: str = "error"
    code: str
    message: str


# ============================================
# REFERRALS
# ============================================

class FriendInfo(BaseModel):
    """Один приглашённый друг."""
    id: int
    first_name: Optional[str] = None
    username: Optional[str] = None
    is_premium: bool = False
    Claimed: str = "N"  # 'Y' | 'N'
    refpoint: int = 0


class ReferralListData(BaseModel):
    friends: List[FriendInfo]
    refCode: str


class ReferralListResponse(BaseModel):
    """Список друзей (формат фронтенда: { data: { friends, refCode } })."""
    data: ReferralListData


class RefClaimRequest(BaseModel):
    """Запрос награды за друга."""
    friendID: int
    refCode: str = Field(min_length=1, max_length=16)


class RefClaimResponse(BaseModel):
    """
    Ответ награды за друга.
    Написание полей сохранено из контракта фронтенда.
    """
    icalimed: bool
    refpoint: int = 0
