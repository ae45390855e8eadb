"""Shared test fixtures for the LogVault test suite.

Provides test settings, an in-memory Redis double, and a FastAPI test
client whose app.state carries a hand-built AppContext.
"""

from __future__ import annotations

import fnmatch
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from logvault.core.config import Settings
from logvault.core.context import AppContext
from logvault.core.sessions import SESSION_COOKIE_NAME
from logvault.core.store import AlarmStore

WEB_SECRET = "s3cret"
API_TOKEN = "api-token"


class FakeRedis:
    """In-memory stand-in for ``redis.asyncio.Redis`` with decoded responses.

    Only implements the commands LogVault issues.
    """

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    async def get(self, key: str) -> str | None:
        self.calls.append(("get", (key,)))
        return self.data.get(key)

    async def set(self, key: str, value: str) -> bool:
        self.calls.append(("set", (key, value)))
        self.data[key] = value
        return True

    async def delete(self, *keys: str) -> int:
        self.calls.append(("delete", keys))
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed

    async def keys(self, pattern: str = "*") -> list[str]:
        self.calls.append(("keys", (pattern,)))
        return [key for key in self.data if fnmatch.fnmatchcase(key, pattern)]

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None


@pytest.fixture
def static_dir(tmp_path: Path) -> Path:
    """A static directory holding minimal index and login pages."""
    directory = tmp_path / "static"
    directory.mkdir()
    (directory / "index.html").write_text("<html><body>alarms</body></html>")
    (directory / "login.html").write_text("<html><body>login</body></html>")
    return directory


@pytest.fixture
def test_settings(static_dir: Path) -> Settings:
    """Create test settings that don't connect to real services."""
    return Settings(
        debug=False,
        syslog_host="127.0.0.1",
        syslog_port=0,
        redis_address="localhost:6379",
        redis_db=1,
        web_secret=WEB_SECRET,
        web_static_dir=str(static_dir),
        api_bearer_token=API_TOKEN,
        external_api_enabled=False,
        external_api_url="http://notify.test/hook",
    )


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def store(fake_redis: FakeRedis) -> AlarmStore:
    return AlarmStore(fake_redis)


@pytest.fixture
def context(test_settings: Settings, fake_redis: FakeRedis) -> AppContext:
    return AppContext.build(test_settings, fake_redis)


@pytest.fixture
async def test_app(test_settings: Settings, context: AppContext) -> AsyncGenerator[Any, None]:
    """Create the FastAPI app with a prepared context.

    ASGITransport does not run the lifespan, so app.state is set by hand.
    """
    from logvault.api.main import create_app
    from logvault.api.routes.auth import limiter

    app = create_app(test_settings)
    app.state.context = context
    limiter.reset()
    yield app
    limiter.reset()


@pytest.fixture
async def client(test_app: Any) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP test client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def session_cookie(context: AppContext) -> dict[str, str]:
    """Cookie jar entry for a freshly issued session."""
    return {SESSION_COOKIE_NAME: context.sessions.create()}


@pytest.fixture
def bearer_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {API_TOKEN}"}
