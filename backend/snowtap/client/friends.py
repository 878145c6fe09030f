"""Friends screen view-model: referral list, friend rewards and the invite link."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx

from ..config import settings

COPIED_TEXT = "Invite Copied, Share it with your friends and family."
NO_LINK_TEXT = "No link to copy."
NOTICE_SECONDS = 5.0


@dataclass
class FriendEntry:
    """One card of the friends list."""

    id: int
    name: str | None
    claimed: bool
    refpoint: int = 0

    @property
    def claim_disabled(self) -> bool:
        return self.claimed


@dataclass
class Notice:
    """Transient confirmation panel."""

    text: str
    expires_at: float


@dataclass
class FriendsView:
    """
    Client side of the friends screen.

    Every action is one HTTP request; nothing is retried or queued.
    """

    base_url: str
    token: str
    game_url: str = settings.GAME_TG_URL
    transport: httpx.AsyncBaseTransport | None = None
    clock: Callable[[], float] = time.monotonic

    friends: list[FriendEntry] = field(default_factory=list)
    ref_code: str = ""
    _notice: Notice | None = field(default=None, init=False, repr=False)
    _client: httpx.AsyncClient | None = field(default=None, init=False, repr=False)

    async def __aenter__(self) -> "FriendsView":
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self.token}"},
            transport=self.transport,
            timeout=10.0,
        )
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("FriendsView must be used as an async context manager")
        return self._client

    @property
    def invite_link(self) -> str:
        if not self.ref_code:
            return ""
        return f"{self.game_url}?startapp={self.ref_code}"

    @property
    def notice(self) -> str | None:
        if self._notice is None or self.clock() >= self._notice.expires_at:
            return None
        return self._notice.text

    def _show(self, text: str) -> None:
        self._notice = Notice(text=text, expires_at=self.clock() + NOTICE_SECONDS)

    async def load(self) -> list[FriendEntry]:
        response = await self.client.get(f"{settings.API_PREFIX}/referral/list")
        response.raise_for_status()

        data = response.json().get("data") or {}
        self.friends = [
            FriendEntry(
                id=item["id"],
                name=item.get("first_name"),
                claimed=item.get("Claimed") == "Y",
                refpoint=item.get("refpoint", 0),
            )
            for item in data.get("friends", [])
        ]
        self.ref_code = data.get("refCode") or ""
        return self.friends

    async def claim(self, friend_id: int) -> bool:
        """Claims the reward for one friend and marks the card claimed without reloading."""
        try:
            response = await self.client.post(
                f"{settings.API_PREFIX}/game/refclaim",
                json={"friendID": friend_id, "refCode": self.ref_code},
            )
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPError as e:
            print(f"❌ [Friends] Error claiming reward: {e}")
            return False

        if not result.get("icalimed"):
            self._notice = None
            await self.load()
            return False

        for friend in self.friends:
            if friend.id == friend_id:
                friend.claimed = True
        self._show(f"Claimed your {result.get('refpoint', 0)} coins, well done keep going.")
        return True

    def copy_invite(self) -> str | None:
        """Returns the invite link to put on the clipboard and opens the confirmation."""
        link = self.invite_link
        if not link:
            self._show(NO_LINK_TEXT)
            return None
        self._show(COPIED_TEXT)
        return link
