import json

import httpx
import pytest
from httpx import ASGITransport

from snowtap.client.friends import COPIED_TEXT, NO_LINK_TEXT, FriendsView
from snowtap.main import app
from snowtap.models import Referral

from conftest import auth_headers


class Clock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class FakeServer:
    """Answers the two endpoints the friends screen talks to."""

    def __init__(self, claim_result=None, claim_status=200):
        self.friends = [
            {"id": 11, "first_name": "Alice", "Claimed": "N", "refpoint": 2500},
            {"id": 12, "first_name": "Bob", "Claimed": "Y", "refpoint": 5000},
        ]
        self.claim_result = claim_result or {"icalimed": True, "refpoint": 2500}
        self.claim_status = claim_status
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        assert request.headers["Authorization"] == "Bearer t0ken"
        if request.url.path == "/api/referral/list":
            return httpx.Response(200, json={"data": {"friends": self.friends, "refCode": "SNOWREF1"}})
        if request.url.path == "/api/game/refclaim":
            return httpx.Response(self.claim_status, json=self.claim_result)
        return httpx.Response(404)


def make_view(server, clock=None):
    return FriendsView(
        base_url="http://api.test",
        token="t0ken",
        game_url="https://t.me/snowtapcoin_bot/earn",
        transport=httpx.MockTransport(server),
        clock=clock or Clock(),
    )


async def test_load_renders_entries():
    async with make_view(FakeServer()) as view:
        entries = await view.load()

    assert [(e.id, e.name, e.claim_disabled) for e in entries] == [(11, "Alice", False), (12, "Bob", True)]
    assert view.invite_link == "https://t.me/snowtapcoin_bot/earn?startapp=SNOWREF1"


async def test_claim_marks_friend_without_reload():
    server = FakeServer()
    async with make_view(server) as view:
        await view.load()
        assert await view.claim(11) is True

    claim_request = server.requests[-1]
    assert claim_request.method == "POST"
    assert json.loads(claim_request.content) == {"friendID": 11, "refCode": "SNOWREF1"}
    assert len(server.requests) == 2
    assert view.friends[0].claim_disabled is True
    assert view.notice == "Claimed your 2500 coins, well done keep going."


async def test_rejected_claim_reloads_list():
    server = FakeServer(claim_result={"icalimed": False, "refpoint": 0})
    async with make_view(server) as view:
        await view.load()
        assert await view.claim(11) is False

    assert [r.url.path for r in server.requests] == [
        "/api/referral/list", "/api/game/refclaim", "/api/referral/list",
    ]
    assert view.friends[0].claim_disabled is False
    assert view.notice is None


async def test_failed_claim_keeps_state():
    server = FakeServer(claim_status=500)
    async with make_view(server) as view:
        await view.load()
        assert await view.claim(11) is False

    assert view.friends[0].claim_disabled is False


async def test_copy_invite_notice_expires():
    clock = Clock()
    async with make_view(FakeServer(), clock) as view:
        await view.load()
        link = view.copy_invite()

    assert link == "https://t.me/snowtapcoin_bot/earn?startapp=SNOWREF1"
    assert view.notice == COPIED_TEXT
    clock.now = 104.0
    assert view.notice == COPIED_TEXT
    clock.now = 105.0
    assert view.notice is None


def test_copy_invite_without_link():
    view = make_view(FakeServer())
    assert view.copy_invite() is None
    assert view.notice == NO_LINK_TEXT


async def test_view_requires_context_manager():
    with pytest.raises(RuntimeError):
        await make_view(FakeServer()).load()


async def test_against_api(client, make_user, session_factory, load_earnings):
    inviter = await make_user(5001, referral_code="SNOW5001")
    friend = await make_user(5002, first_name="Carol")
    async with session_factory() as session:
        session.add(Referral(inviter_id=inviter.id, invitee_id=friend.id, reward_points=2500))
        await session.commit()

    token = auth_headers(inviter)["Authorization"][len("Bearer "):]
    view = FriendsView(base_url="http://test", token=token, transport=ASGITransport(app=app))
    async with view:
        await view.load()
        assert view.ref_code == "SNOW5001"
        assert await view.claim(friend.id) is True

    assert view.friends[0].claim_disabled is True
    assert (await load_earnings(inviter.id)).tap_score == 2500
