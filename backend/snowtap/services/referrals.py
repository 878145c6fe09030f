"""
Referral helpers shared across API and bot entrypoints.
"""

from __future__ import annotations

import secrets

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_redis
from ..errors import NotFoundError
from ..models import Referral, User
from ..schemas import FriendInfo, ReferralListData, ReferralListResponse, RefClaimResponse
from .mining import coerce_int, load_earnings, utcnow


def _pending_key(telegram_id: int) -> str:
    return f"ref_pending:{telegram_id}"


def extract_referral_code(raw_value: str | None) -> str | None:
    """Extracts normalized referral code from a raw `CODE` or `ref_CODE` value."""
    if not raw_value:
        return None

    value = raw_value.strip()
    if value.lower().startswith("ref_"):
        value = value[4:]

    code = value.strip().upper()
    return code or None


def extract_referral_code_from_start_text(text: str | None) -> str | None:
    """Extracts referral code from `/start ref_CODE` bot command text."""
    if not text:
        return None

    parts = text.split(maxsplit=1)
    if len(parts) < 2:
        return None

    return extract_referral_code(parts[1])


def referral_reward(invitee: User) -> int:
    if invitee.is_premium:
        return settings.REFERRAL_REWARD_PREMIUM
    return settings.REFERRAL_REWARD


async def store_pending_referral_code(
    telegram_id: int,
    referral_code: str,
    *,
    source: str,
) -> bool:
    """Stores pending referral code in Redis for auth-time fallback."""
    code = referral_code.strip().upper()
    if not code:
        return False

    redis = await get_redis()
    await redis.set(
        _pending_key(telegram_id),
        code,
        ex=settings.REFERRAL_PENDING_TTL_HOURS * 3600,
    )
    print(f"📌 [Referral:{source}] Stored pending code for telegram_id={telegram_id}")
    return True


async def pop_pending_referral_code(telegram_id: int) -> str | None:
    """Takes the code stored by the bot, if any. Redis being down is not fatal."""
    try:
        redis = await get_redis()
        code = await redis.get(_pending_key(telegram_id))
        if code:
            await redis.delete(_pending_key(telegram_id))
    except Exception as e:
        print(f"⚠️ [Referral] Redis pending code check failed: {e}")
        return None

    if isinstance(code, bytes):
        code = code.decode("utf-8")
    return extract_referral_code(code)


async def ensure_referral_code(user: User, db: AsyncSession) -> str:
    if not user.referral_code:
        user.referral_code = secrets.token_urlsafe(6).upper()[:8]
        await db.commit()
    return user.referral_code


async def apply_referral_code(user: User, code: str, db: AsyncSession) -> bool:
    """
    Links a freshly registered user to the owner of `code`.

    Already referred users, unknown codes and self referrals are ignored.
    """
    if user.referred_by_id is not None:
        print(f"ℹ️ [Referral] User {user.id} already has referrer")
        return False

    result = await db.execute(select(User).where(User.referral_code == code.upper()))
    referrer = result.scalar_one_or_none()

    if not referrer:
        print(f"ℹ️ [Referral] Invalid code used by user {user.id}")
        return False

    if referrer.id == user.id:
        print(f"ℹ️ [Referral] Self-referral blocked for user {user.id}")
        return False

    # UNIQUE на invitee_id защищает от повторного применения
    try:
        db.add(
            Referral(
                inviter_id=referrer.id,
                invitee_id=user.id,
                reward_points=referral_reward(user),
            )
        )
        user.referred_by_id = referrer.id
        await db.commit()
    except IntegrityError:
        await db.rollback()
        await db.refresh(user)
        print(f"ℹ️ [Referral] Duplicate apply ignored for user {user.id}")
        return False

    print(f"✅ [Referral] Created: invitee={user.id}, inviter={referrer.id}")
    return True


async def list_friends(user: User, db: AsyncSession) -> ReferralListResponse:
    ref_code = await ensure_referral_code(user, db)

    result = await db.execute(
        select(Referral, User)
        .join(User, Referral.invitee_id == User.id)
        .where(Referral.inviter_id == user.id)
        .order_by(Referral.created_at, Referral.id)
    )

    friends = [
        FriendInfo(
            id=friend.id,
            first_name=friend.first_name,
            username=friend.username,
            is_premium=bool(friend.is_premium),
            Claimed="Y" if ref.is_claimed else "N",
            refpoint=ref.reward_points,
        )
        for ref, friend in result.all()
    ]

    return ReferralListResponse(data=ReferralListData(friends=friends, refCode=ref_code))


async def claim_referral_reward(
    user: User,
    friend_id: int,
    ref_code: str,
    db: AsyncSession,
) -> RefClaimResponse:
    """Credits the inviter's tap score with the reward for one invited friend."""
    if not user.referral_code or ref_code.strip().upper() != user.referral_code:
        raise NotFoundError(f"Referral code {ref_code} does not belong to {user.id}")

    result = await db.execute(
        select(Referral)
        .where(Referral.inviter_id == user.id, Referral.invitee_id == friend_id)
        .with_for_update()
    )
    referral = result.scalar_one_or_none()
    if referral is None:
        raise NotFoundError(f"No referral of {friend_id} found for {user.id}")

    if referral.is_claimed:
        print(f"ℹ️ [Referral] Friend {friend_id} already claimed by {user.id}")
        return RefClaimResponse(icalimed=False, refpoint=0)

    earnings = await load_earnings(db, user.id, for_update=True)
    earnings.tap_score = coerce_int(earnings.tap_score, "tap_score") + referral.reward_points

    referral.is_claimed = True
    referral.claimed_at = utcnow()
    await db.flush()

    print(f"✅ [Referral] User {user.id} claimed {referral.reward_points} for friend {friend_id}")
    return RefClaimResponse(icalimed=True, refpoint=referral.reward_points)
