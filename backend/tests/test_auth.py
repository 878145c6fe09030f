import time

import jwt
from sqlalchemy import func, select

from snowtap.config import settings
from snowtap.middleware.security import validate_telegram_init_data
from snowtap.models import Earnings, Referral, User

from conftest import sign_init_data


TG_USER = {"id": 777000, "first_name": "Ivan", "username": "ivan", "is_premium": False}


async def test_telegram_auth_creates_user_with_earnings(client, load_earnings):
    response = await client.post("/api/auth/telegram", json={"init_data": sign_init_data(TG_USER)})

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["telegram_id"] == 777000
    assert body["user"]["first_name"] == "Ivan"

    earnings = await load_earnings(body["user"]["id"])
    assert (earnings.tap_score, earnings.miner_level, earnings.last_mine_date) == (0, 0, None)

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.status_code == 200
    assert me.json()["earnings"]["miner_level"] == 0
    assert me.json()["earnings"]["can_claim"] is False


async def test_repeat_auth_updates_profile_only(client, session_factory):
    await client.post("/api/auth/telegram", json={"init_data": sign_init_data(TG_USER)})
    renamed = {**TG_USER, "first_name": "Vanya"}
    response = await client.post("/api/auth/telegram", json={"init_data": sign_init_data(renamed)})

    assert response.json()["user"]["first_name"] == "Vanya"
    async with session_factory() as session:
        assert await session.scalar(select(func.count()).select_from(User)) == 1
        assert await session.scalar(select(func.count()).select_from(Earnings)) == 1


async def test_start_param_links_referral(client, make_user, session_factory):
    inviter = await make_user(1, referral_code="ABCD1234")
    premium = {**TG_USER, "is_premium": True}

    response = await client.post(
        "/api/auth/telegram",
        json={"init_data": sign_init_data(premium, start_param="abcd1234")},
    )

    invitee_id = response.json()["user"]["id"]
    async with session_factory() as session:
        referral = (await session.execute(select(Referral))).scalar_one()
        invitee = await session.get(User, invitee_id)

    assert (referral.inviter_id, referral.invitee_id) == (inviter.id, invitee_id)
    assert referral.reward_points == settings.REFERRAL_REWARD_PREMIUM
    assert referral.is_claimed is False
    assert invitee.referred_by_id == inviter.id


async def test_pending_code_from_bot_is_used(client, make_user, session_factory, fake_redis):
    inviter = await make_user(2, referral_code="BOTC0DE1")
    fake_redis.store[f"ref_pending:{TG_USER['id']}"] = "BOTC0DE1"

    await client.post("/api/auth/telegram", json={"init_data": sign_init_data(TG_USER)})

    async with session_factory() as session:
        referral = (await session.execute(select(Referral))).scalar_one()
    assert referral.inviter_id == inviter.id
    assert referral.reward_points == settings.REFERRAL_REWARD
    assert fake_redis.store == {}


async def test_unknown_referral_code_is_ignored(client, session_factory):
    response = await client.post(
        "/api/auth/telegram",
        json={"init_data": sign_init_data(TG_USER, start_param="NOSUCHCODE")},
    )

    assert response.status_code == 200
    async with session_factory() as session:
        assert await session.scalar(select(func.count()).select_from(Referral)) == 0


async def test_forged_init_data_rejected(client):
    forged = sign_init_data(TG_USER, bot_token="999:OTHER")
    response = await client.post("/api/auth/telegram", json={"init_data": forged})
    assert response.status_code == 401


def test_init_data_validation():
    parsed = validate_telegram_init_data(sign_init_data(TG_USER, start_param="ref_X1"))
    assert parsed == {"user": TG_USER, "start_param": "ref_X1"}

    stale = sign_init_data(TG_USER, auth_date=int(time.time()) - 2 * 86400)
    assert validate_telegram_init_data(stale) is None
    assert validate_telegram_init_data("auth_date=1&user=%7B%7D") is None


async def test_expired_token_rejected(client, make_user):
    user = await make_user(3)
    token = jwt.encode(
        {"sub": str(user.id), "exp": int(time.time()) - 10},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )

    response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


async def test_init_data_without_user_id_rejected(client):
    nameless = sign_init_data({"first_name": "Ghost"})
    response = await client.post("/api/auth/telegram", json={"init_data": nameless})
    assert response.status_code == 401
