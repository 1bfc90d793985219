"""
Shared fixtures: an isolated in-memory store per test, the app wired to it,
and an HTTP client talking to the app in-process.
"""
import os

# Must be set before profile_api.config is imported
os.environ.setdefault("TRACING_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret")

from datetime import datetime, timedelta
from typing import Optional

import httpx
import pytest
import pytest_asyncio

from profile_api.clients.media_client import owner_prefix
from profile_api.core import directory
from profile_api.database import Database
from profile_api.main import create_app
from profile_api.security import create_tokens

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


class FakeMediaStore:
    """Records what the API asks of the media store."""

    def __init__(self):
        self.uploads: list[tuple[str, str, int]] = []
        self.deleted: list[str] = []

    def upload(self, data: bytes, filename: str, content_type: str, owner_id: str) -> tuple[str, str]:
        key = f"{owner_prefix(owner_id)}test-{len(self.uploads)}.{filename.rsplit('.', 1)[-1]}"
        self.uploads.append((key, content_type, len(data)))
        return f"http://media.test/{key}", key

    def presigned_upload(self, filename: str, content_type: str, owner_id: str) -> tuple[str, str, str]:
        key = f"{owner_prefix(owner_id)}presigned-{filename}"
        return f"http://media.test/upload/{key}?sig=abc", key, f"http://media.test/{key}"

    def delete(self, key: str) -> bool:
        self.deleted.append(key)
        return True


@pytest_asyncio.fixture
async def database():
    db = Database("sqlite+aiosqlite:///:memory:")
    await db.connect()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def session(database):
    async with database.session() as s:
        yield s


@pytest.fixture
def media():
    return FakeMediaStore()


@pytest.fixture
def app(database, media):
    application = create_app()
    application.state.database = database
    application.state.media = media
    return application


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def make_account(database):
    """
    Create a user + profile in its own session.

    `minutes` offsets created_at from BASE_TIME so tests control
    newest-first ordering exactly.
    """
    async def _make(
        name: str,
        interests: Optional[list[str]] = None,
        bio: str = "",
        headline: str = "",
        minutes: Optional[int] = None,
        active: bool = True,
        email: Optional[str] = None,
    ):
        async with database.session() as s:
            user, profile = await directory.create_account(
                s,
                email=email or f"{name.lower().replace(' ', '.')}@example.com",
                password_hash="not-a-real-hash",
                name=name,
                bio=bio,
                headline=headline,
                interests=interests,
            )
            if minutes is not None or not active:
                if minutes is not None:
                    profile.created_at = BASE_TIME + timedelta(minutes=minutes)
                profile.is_active = active
                await s.commit()
            return user, profile

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user_id: str) -> dict[str, str]:
        access_token, _ = create_tokens(user_id)
        return {"Authorization": f"Bearer {access_token}"}

    return _headers
