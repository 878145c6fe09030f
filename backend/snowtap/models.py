"""
SnowTap - Database Models

Все SQLAlchemy модели в одном файле.
"""

from datetime import datetime
from sqlalchemy import (
    Column, Integer, BigInteger, String, Boolean, DateTime, ForeignKey
)

from .database import Base


# ============================================
# USER
# ============================================

class User(Base):
    """Пользователь Telegram."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    telegram_id = Column(BigInteger, unique=True, nullable=False, index=True)
    username = Column(String(64), nullable=True)
    first_name = Column(String(128), nullable=True)
    photo_url = Column(String(512), nullable=True)
    is_premium = Column(Boolean, default=False)

    # Рефералы
    referral_code = Column(String(16), unique=True, nullable=True, index=True)
    referred_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Метаданные
    created_at = Column(DateTime, default=datetime.utcnow)
    last_active_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "telegram_id": self.telegram_id,
            "username": self.username,
            "first_name": self.first_name,
            "photo_url": self.photo_url,
            "is_premium": bool(self.is_premium),
            "referral_code": self.referral_code,
        }


# ============================================
# EARNINGS
# ============================================

class Earnings(Base):
    """
    Заработок игрока: баланс тапов и майнер.

    last_mine_date хранится как naive UTC.
    """

    __tablename__ = "earnings"

    id = Column(Integer, primary_key=True)
    userid = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)

    tap_score = Column(BigInteger, default=0, nullable=False)
    miner_level = Column(Integer, default=0, nullable=False)  # 0..5
    last_mine_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ============================================
# REFERRAL
# ============================================

class Referral(Base):
    """
    Реферальная связь между пригласившим (inviter) и приглашённым (invitee).

    Награда (reward_points) фиксируется при создании и забирается
    inviter'ом вручную через /game/refclaim.
    """

    __tablename__ = "referrals"

    id = Column(Integer, primary_key=True)
    inviter_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    invitee_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, unique=True)

    reward_points = Column(Integer, nullable=False, default=0)
    is_claimed = Column(Boolean, default=False, nullable=False)
    claimed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
