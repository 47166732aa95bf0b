"""Shared fixtures: an in-memory account store and a fake media gateway.

Repository functions are swapped for :class:`FakeAccountStore` methods, so the
HTTP surface, the session lifecycle and the serializers run unchanged without
a PostgreSQL server.
"""

from __future__ import annotations

import itertools
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

os.environ["ACCESS_TOKEN_SECRET"] = "test-access-secret"
os.environ["REFRESH_TOKEN_SECRET"] = "test-refresh-secret"
os.environ["PASSWORD_HASH_ITERATIONS"] = "1000"
os.environ["COOKIE_SECURE"] = "true"
os.environ["REVOKE_SESSIONS_ON_PASSWORD_CHANGE"] = "false"
os.environ["UPLOAD_TMP_DIR"] = tempfile.mkdtemp(prefix="videotube-test-")

import cloudinary.uploader
import pytest
from fastapi.testclient import TestClient

from videotube import account_repository, channel_repository
from videotube.account_repository import LookupKind
from videotube.application import create_app
from videotube.errors import ConflictError

ACCOUNT_FUNCTIONS = (
    "get_account_by_id",
    "find_account",
    "account_exists",
    "create_account",
    "store_refresh_token",
    "rotate_refresh_token",
    "clear_refresh_token",
    "update_password",
    "update_account_details",
    "update_avatar",
    "update_cover_image",
)
CHANNEL_FUNCTIONS = ("get_channel_profile", "get_watch_history")

USERS_URL = "/api/v1/users"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class FakeAccountStore:
    def __init__(self) -> None:
        self.accounts: dict[int, dict] = {}
        self.videos: dict[int, dict] = {}
        self.subscriptions: set[tuple[int, int]] = set()
        self._account_ids = itertools.count(1)
        self._video_ids = itertools.count(1)

    def _touch(self, account_id: int, **changes) -> dict | None:
        row = self.accounts.get(int(account_id))
        if row is None:
            return None
        row.update(changes, updated_at=_now())
        return dict(row)

    async def get_account_by_id(self, account_id: int):
        row = self.accounts.get(int(account_id))
        return dict(row) if row is not None else None

    async def find_account(self, lookup):
        for row in sorted(self.accounts.values(), key=lambda item: item["id"]):
            by_username = lookup.kind in (LookupKind.USERNAME, LookupKind.EITHER) and row["username"] == lookup.username
            by_email = lookup.kind in (LookupKind.EMAIL, LookupKind.EITHER) and row["email"] == lookup.email
            if by_username or by_email:
                return dict(row)
        return None

    async def account_exists(self, username: str, email: str) -> bool:
        return any(
            row["username"] == username or row["email"] == email
            for row in self.accounts.values()
        )

    async def create_account(self, *, full_name, username, email, password_hash, avatar, cover_image=""):
        if await self.account_exists(username, email):
            raise ConflictError()
        account_id = next(self._account_ids)
        now = _now()
        self.accounts[account_id] = {
            "id": account_id,
            "username": username,
            "email": email,
            "full_name": full_name,
            "avatar": avatar,
            "cover_image": cover_image or "",
            "password_hash": password_hash,
            "refresh_token": None,
            "watch_history": [],
            "created_at": now,
            "updated_at": now,
        }
        return dict(self.accounts[account_id])

    async def store_refresh_token(self, account_id: int, refresh_token: str) -> bool:
        return self._touch(account_id, refresh_token=refresh_token) is not None

    async def rotate_refresh_token(self, account_id: int, current_token: str, new_token: str) -> bool:
        row = self.accounts.get(int(account_id))
        if row is None or row["refresh_token"] != current_token:
            return False
        self._touch(account_id, refresh_token=new_token)
        return True

    async def clear_refresh_token(self, account_id: int) -> None:
        self._touch(account_id, refresh_token=None)

    async def update_password(self, account_id: int, password_hash: str, *, revoke_session: bool = False) -> None:
        changes = {"password_hash": password_hash}
        if revoke_session:
            changes["refresh_token"] = None
        self._touch(account_id, **changes)

    async def update_account_details(self, account_id: int, full_name: str, email: str):
        if any(row["email"] == email and row["id"] != int(account_id) for row in self.accounts.values()):
            raise ConflictError("Email is already in use")
        return self._touch(account_id, full_name=full_name, email=email)

    async def update_avatar(self, account_id: int, url: str):
        return self._touch(account_id, avatar=url)

    async def update_cover_image(self, account_id: int, url: str):
        return self._touch(account_id, cover_image=url)

    async def get_channel_profile(self, username: str, viewer_id: int | None):
        row = next((item for item in self.accounts.values() if item["username"] == username), None)
        if row is None:
            return None
        subscribers = {sub for sub, channel in self.subscriptions if channel == row["id"]}
        subscribed_to = [channel for sub, channel in self.subscriptions if sub == row["id"]]
        return channel_repository.serialize_channel(
            {
                **row,
                "subscribers_count": len(subscribers),
                "channels_subscribed_to_count": len(subscribed_to),
                "is_subscribed": viewer_id in subscribers,
            }
        )

    async def get_watch_history(self, account_id: int):
        row = self.accounts.get(int(account_id))
        entries = []
        for video_id in (row or {}).get("watch_history", []):
            video = self.videos.get(video_id)
            if video is None:
                continue
            owner = self.accounts.get(video["owner_id"]) if video["owner_id"] is not None else None
            entries.append(
                channel_repository.serialize_history_entry(
                    {
                        **video,
                        "owner_id": owner["id"] if owner else None,
                        "owner_full_name": owner["full_name"] if owner else None,
                        "owner_username": owner["username"] if owner else None,
                        "owner_avatar": owner["avatar"] if owner else None,
                    }
                )
            )
        return entries

    def add_video(self, owner_id: int | None, title: str) -> int:
        video_id = next(self._video_ids)
        now = _now()
        self.videos[video_id] = {
            "id": video_id,
            "owner_id": owner_id,
            "title": title,
            "description": f"{title} description",
            "video_file": f"https://media.test/{video_id}.mp4",
            "thumbnail": f"https://media.test/{video_id}.jpg",
            "duration": 12.5,
            "views": 3,
            "is_published": True,
            "created_at": now,
            "updated_at": now,
        }
        return video_id

    def subscribe(self, subscriber_id: int, channel_id: int) -> None:
        self.subscriptions.add((subscriber_id, channel_id))

    def watch(self, account_id: int, video_id: int) -> None:
        self.accounts[account_id]["watch_history"].append(video_id)


class FakeGateway:
    """Stands in for ``cloudinary.uploader.upload``."""

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.failing_payloads: set[bytes] = set()

    def __call__(self, path: str, **options):
        local = Path(path)
        self.calls.append({"path": path, "existed": local.exists(), "options": options})
        if local.read_bytes() in self.failing_payloads:
            raise RuntimeError("gateway unavailable")
        name = f"{len(self.calls)}{local.suffix}"
        return {
            "url": f"http://res.cloudinary.test/{name}",
            "secure_url": f"https://res.cloudinary.test/{name}",
        }


@pytest.fixture
def store(monkeypatch) -> FakeAccountStore:
    fake = FakeAccountStore()
    for name in ACCOUNT_FUNCTIONS:
        monkeypatch.setattr(account_repository, name, getattr(fake, name))
    for name in CHANNEL_FUNCTIONS:
        monkeypatch.setattr(channel_repository, name, getattr(fake, name))
    return fake


@pytest.fixture
def gateway(monkeypatch) -> FakeGateway:
    fake = FakeGateway()
    monkeypatch.setattr(cloudinary.uploader, "upload", fake)
    return fake


@pytest.fixture
def client(store, gateway) -> TestClient:
    return TestClient(create_app())


@pytest.fixture
def staging_dir() -> Path:
    return Path(os.environ["UPLOAD_TMP_DIR"])


@pytest.fixture
def register(client):
    def _register(avatar: bytes | None = b"avatar-bytes", cover: bytes | None = None, **fields):
        data = {
            "fullName": "Alice Liddell",
            "username": "alice",
            "email": "a@x.com",
            "password": "p1",
        }
        data.update(fields)
        data = {key: value for key, value in data.items() if value is not None}
        files = {}
        if avatar is not None:
            files["avatar"] = ("a.png", avatar, "image/png")
        if cover is not None:
            files["coverImage"] = ("cover.jpg", cover, "image/jpeg")
        return client.post(f"{USERS_URL}/register", data=data, files=files or None)

    return _register


@pytest.fixture
def login(client):
    def _login(**payload):
        body = {"username": "alice", "password": "p1"}
        body.update(payload)
        return client.post(f"{USERS_URL}/login", json={k: v for k, v in body.items() if v is not None})

    return _login


@pytest.fixture
def session(register, login) -> dict:
    """A registered and logged-in account's tokens and bearer header."""
    register()
    data = login().json()["data"]
    return {
        "user": data["user"],
        "accessToken": data["accessToken"],
        "refreshToken": data["refreshToken"],
        "headers": {"Authorization": f"Bearer {data['accessToken']}"},
    }
