import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["TELEGRAM_BOT_TOKEN"] = "123456:TEST-TOKEN"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import hashlib
import hmac
import json
import time
from urllib.parse import urlencode

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from snowtap.api.auth import create_jwt_token
from snowtap.database import Base, get_db
from snowtap.main import app
from snowtap.models import Earnings, User
from snowtap.services import referrals


class FakeRedis:
    def __init__(self):
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value

    async def delete(self, key):
        self.store.pop(key, None)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'snowtap.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_redis(monkeypatch):
    redis = FakeRedis()

    async def get_fake_redis():
        return redis

    monkeypatch.setattr(referrals, "get_redis", get_fake_redis)
    return redis


@pytest.fixture
def override_db(session_factory):
    async def get_test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = get_test_db
    yield
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(override_db, fake_redis):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(session_factory):
    """Creates a user (and, unless with_earnings=False, its earnings record)."""

    async def factory(
        telegram_id,
        *,
        tap_score=0,
        miner_level=0,
        last_mine_date=None,
        with_earnings=True,
        **user_fields,
    ):
        async with session_factory() as session:
            user = User(telegram_id=telegram_id, **user_fields)
            session.add(user)
            await session.flush()
            if with_earnings:
                session.add(Earnings(
                    userid=user.id,
                    tap_score=tap_score,
                    miner_level=miner_level,
                    last_mine_date=last_mine_date,
                ))
            await session.commit()
            return user

    return factory


@pytest.fixture
def load_earnings(session_factory):
    async def loader(user_id):
        async with session_factory() as session:
            result = await session.execute(select(Earnings).where(Earnings.userid == user_id))
            return result.scalar_one()

    return loader


def auth_headers(user):
    return {"Authorization": f"Bearer {create_jwt_token(user.id)}"}


def sign_init_data(user_data, *, start_param=None, auth_date=None, bot_token="123456:TEST-TOKEN"):
    fields = {
        "auth_date": str(auth_date if auth_date is not None else int(time.time())),
        "query_id": "AAHdF6IQAAAAAN0XohDhrOrc",
        "user": json.dumps(user_data, separators=(",", ":")),
    }
    if start_param:
        fields["start_param"] = start_param

    data_check_string = "\n".join(f"{key}={fields[key]}" for key in sorted(fields))
    secret_key = hmac.new(b"WebAppData", bot_token.encode(), hashlib.sha256).digest()
    fields["hash"] = hmac.new(secret_key, data_check_string.encode(), hashlib.sha256).hexdigest()
    return urlencode(fields)
