"""
Miner rules: upgrade costs, claim rewards and 3-hour claim windows.

The UTC day is split into 8 batches of 10800 seconds, numbered 1..8.
A miner can be claimed once per batch.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import IntEnum
from typing import Any, NamedTuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import (
    InsufficientScoreError,
    InvalidClaimError,
    InvalidLevelError,
    LevelCapError,
    NotFoundError,
    UnknownLevelError,
)
from ..models import Earnings

SECONDS_PER_DAY = 24 * 3600
BATCHES_PER_DAY = 8
SECONDS_PER_BATCH = SECONDS_PER_DAY // BATCHES_PER_DAY


class MinerLevel(IntEnum):
    BASIC = 1
    ADVANCED = 2
    PRO = 3
    ELITE = 4
    LEGEND = 5


MAX_MINER_LEVEL = max(MinerLevel)


class Amount(NamedTuple):
    score: int
    label: str


# Cost of reaching the level
UPGRADE_COSTS: dict[MinerLevel, Amount] = {
    MinerLevel.BASIC: Amount(3000, "3k"),
    MinerLevel.ADVANCED: Amount(6000, "6k"),
    MinerLevel.PRO: Amount(10000, "10k"),
    MinerLevel.ELITE: Amount(12000, "12k"),
    MinerLevel.LEGEND: Amount(18000, "18k"),
}

# Reward of one claim at the level
CLAIM_REWARDS: dict[MinerLevel, Amount] = {
    MinerLevel.BASIC: Amount(1500, "1.5k"),
    MinerLevel.ADVANCED: Amount(3000, "3k"),
    MinerLevel.PRO: Amount(5000, "5k"),
    MinerLevel.ELITE: Amount(6000, "6k"),
    MinerLevel.LEGEND: Amount(9000, "9k"),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is not None:
        return moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def coerce_int(value: Any, field: str) -> int:
    """Numeric fields that cannot be parsed count as zero."""
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        print(f"⚠️ [Mining] Unparseable {field}={value!r}, using 0")
        return 0


def batch_of(moment: datetime) -> int:
    """Number (1..8) of the 3-hour UTC window that contains `moment`."""
    moment = to_naive_utc(moment)
    seconds = moment.hour * 3600 + moment.minute * 60 + moment.second
    return seconds // SECONDS_PER_BATCH + 1


def batch_start(moment: datetime) -> datetime:
    moment = to_naive_utc(moment)
    midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight + timedelta(seconds=(batch_of(moment) - 1) * SECONDS_PER_BATCH)


def upgrade_level(level: int) -> MinerLevel:
    try:
        return MinerLevel(level)
    except ValueError:
        raise InvalidLevelError(f"Invalid miner level: {level}") from None


def claim_level(level: int) -> MinerLevel:
    try:
        return MinerLevel(level)
    except ValueError:
        raise UnknownLevelError(f"Invalid miner level: {level}") from None


def required_score(level: int) -> int:
    """Score needed to reach `level`."""
    return UPGRADE_COSTS[upgrade_level(level)].score


def claim_score(level: int) -> int:
    """Score granted by one claim at `level`."""
    return CLAIM_REWARDS[claim_level(level)].score


def can_claim(miner_level: int, last_mine_date: datetime | None, now: datetime) -> bool:
    if miner_level <= 0:
        return False
    if last_mine_date is None:
        return True

    last_mine_date = to_naive_utc(last_mine_date)
    now = to_naive_utc(now)
    if now.date() > last_mine_date.date():
        return True
    return now.date() == last_mine_date.date() and batch_of(last_mine_date) < batch_of(now)


def next_claim_at(miner_level: int, last_mine_date: datetime | None, now: datetime) -> datetime | None:
    """Start of the window in which the miner can be claimed next, None without a miner."""
    if miner_level <= 0:
        return None
    if can_claim(miner_level, last_mine_date, now):
        return to_naive_utc(now)
    return batch_start(last_mine_date) + timedelta(seconds=SECONDS_PER_BATCH)


# ============================================
# RECORD MUTATIONS
# ============================================

def apply_upgrade(earnings: Earnings, user_id: int) -> Earnings:
    level = coerce_int(earnings.miner_level, "miner_level")
    score = coerce_int(earnings.tap_score, "tap_score")

    if level >= MAX_MINER_LEVEL:
        raise LevelCapError(f"User exceeds upgrade level {user_id}")

    next_level = level + 1
    required = required_score(next_level)

    if score < required:
        raise InsufficientScoreError(user_id, level, score, required)

    earnings.tap_score = score - required
    earnings.miner_level = next_level
    return earnings


def apply_claim(earnings: Earnings, user_id: int, now: datetime) -> Earnings:
    level = coerce_int(earnings.miner_level, "miner_level")
    now = to_naive_utc(now)

    if level <= 0:
        raise InvalidClaimError(f"No active miner for {user_id}")

    if not can_claim(level, earnings.last_mine_date, now):
        raise InvalidClaimError(f"Invalid claim request for {user_id}")

    earnings.tap_score = coerce_int(earnings.tap_score, "tap_score") + claim_score(level)
    earnings.last_mine_date = now
    return earnings


# ============================================
# PERSISTENCE
# ============================================

async def load_earnings(db: AsyncSession, user_id: int, *, for_update: bool = False) -> Earnings:
    query = select(Earnings).where(Earnings.userid == user_id)
    if for_update:
        query = query.with_for_update()

    result = await db.execute(query)
    earnings = result.scalar_one_or_none()
    if earnings is None:
        raise NotFoundError(f"No earnings record found for {user_id}")
    return earnings


async def upgrade(db: AsyncSession, user_id: int) -> Earnings:
    earnings = await load_earnings(db, user_id, for_update=True)
    apply_upgrade(earnings, user_id)
    await db.flush()
    print(f"⛏️ [Mining] User {user_id} upgraded to level {earnings.miner_level}, score={earnings.tap_score}")
    return earnings


async def claim(db: AsyncSession, user_id: int, now: datetime | None = None) -> Earnings:
    earnings = await load_earnings(db, user_id, for_update=True)
    apply_claim(earnings, user_id, now or utcnow())
    await db.flush()
    print(f"⛏️ [Mining] User {user_id} claimed, score={earnings.tap_score}")
    return earnings


def _table_entry(table: dict[MinerLevel, Amount], level: int | None) -> Amount | None:
    if level is None:
        return None
    try:
        return table[MinerLevel(level)]
    except ValueError:
        return None


def describe(earnings: Earnings, now: datetime) -> dict[str, Any]:
    """
    Mining status of the record as seen at `now`.

    Read-only: a level outside the tables shows up as missing amounts
    instead of an error.
    """
    level = coerce_int(earnings.miner_level, "miner_level")
    score = coerce_int(earnings.tap_score, "tap_score")
    last_mine_date = earnings.last_mine_date

    next_level = level + 1 if level < MAX_MINER_LEVEL else None
    reward = _table_entry(CLAIM_REWARDS, level)
    cost = _table_entry(UPGRADE_COSTS, next_level)
    if level > 0 and reward is None:
        print(f"⚠️ [Mining] Unknown miner_level={level} in status view")

    return {
        "tap_score": score,
        "miner_level": level,
        "last_mine_date": last_mine_date,
        "current_batch": batch_of(now),
        "can_claim": reward is not None and can_claim(level, last_mine_date, now),
        "claim_reward": reward.score if reward else None,
        "claim_reward_label": reward.label if reward else None,
        "next_level": next_level,
        "upgrade_cost": cost.score if cost else None,
        "upgrade_cost_label": cost.label if cost else None,
        "next_claim_at": next_claim_at(level, last_mine_date, now) if reward else None,
    }
