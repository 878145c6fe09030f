"""
SnowTap - Authentication API

Авторизация через Telegram Mini App.
"""

import time
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Header
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import jwt

from ..config import settings
from ..database import get_db
from ..models import User, Earnings
from ..schemas import TelegramAuthRequest, AuthResponse, MeResponse, MiningStatusResponse
from ..middleware.security import validate_telegram_init_data
from ..services import mining
from ..services.referrals import (
    apply_referral_code,
    extract_referral_code,
    pop_pending_referral_code,
)


router = APIRouter(prefix="/auth", tags=["auth"])


# ============================================
# JWT HELPERS
# ============================================

def create_jwt_token(user_id: int) -> str:
    """Создаёт JWT токен."""
    payload = {
        "sub": str(user_id),
        "iat": int(time.time()),
        "exp": int(time.time()) + settings.JWT_EXPIRE_HOURS * 3600,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_jwt_token(token: str) -> Optional[int]:
    """Проверяет JWT токен и возвращает user_id."""
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM]
        )
        return int(payload["sub"])
    except jwt.ExpiredSignatureError:
        print("⚠️  [Auth] Token expired")
        return None
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        print(f"⚠️  [Auth] Invalid token: {e}")
        return None


# ============================================
# DEPENDENCY: GET CURRENT USER
# ============================================

async def get_current_user(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Dependency для получения текущего пользователя по Bearer токену."""
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    user_id = verify_jwt_token(authorization[7:])
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    return user


# ============================================
# ENDPOINTS
# ============================================

@router.post("/telegram", response_model=AuthResponse)
async def auth_telegram(
    request: TelegramAuthRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Авторизация через Telegram Mini App.

    Новый пользователь получает запись Earnings и, если пришёл по
    реферальной ссылке (start_param или код, сохранённый ботом), реферера.
    """
    init_data = validate_telegram_init_data(request.init_data)
    telegram_user = init_data["user"] if init_data else None
    telegram_id = telegram_user.get("id") if isinstance(telegram_user, dict) else None

    if telegram_id is None:
        raise HTTPException(
            status_code=401,
            detail="Invalid Telegram authentication data"
        )

    result = await db.execute(
        select(User).where(User.telegram_id == telegram_id)
    )
    user = result.scalar_one_or_none()

    if not user:
        user = User(
            telegram_id=telegram_id,
            username=telegram_user.get("username"),
            first_name=telegram_user.get("first_name"),
            photo_url=telegram_user.get("photo_url"),
            is_premium=telegram_user.get("is_premium", False),
        )
        db.add(user)
        await db.flush()

        db.add(Earnings(
            userid=user.id,
            tap_score=settings.INITIAL_TAP_SCORE,
            miner_level=0,
        ))
        await db.commit()
        await db.refresh(user)

        print(f"🆕 [Auth] New user created: {user.id}")

        code = extract_referral_code(init_data["start_param"])
        if not code:
            code = await pop_pending_referral_code(telegram_id)
        if code:
            await apply_referral_code(user, code, db)
    else:
        user.username = telegram_user.get("username")
        user.first_name = telegram_user.get("first_name")
        user.photo_url = telegram_user.get("photo_url")
        user.is_premium = telegram_user.get("is_premium", False)
        user.last_active_at = datetime.utcnow()
        await db.commit()

    token = create_jwt_token(user.id)

    return AuthResponse(token=token, user=user.to_dict())


@router.get("/me", response_model=MeResponse)
async def get_me(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Получить данные текущего пользователя и его майнера."""
    earnings = await mining.load_earnings(db, user.id)
    status = mining.describe(earnings, mining.utcnow())
    return MeResponse(user=user.to_dict(), earnings=MiningStatusResponse(**status))
