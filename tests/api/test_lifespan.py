"""Tests for application startup and shutdown wiring."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from logvault.api.main import create_app, lifespan
from logvault.core.config import Settings


@pytest.fixture
def enabled_settings(test_settings: Settings) -> Settings:
    return test_settings.model_copy(update={"external_api_enabled": True, "external_api_worker_count": 2})


async def test_startup_and_shutdown(enabled_settings: Settings, fake_redis) -> None:
    fake_redis.aclose = AsyncMock()
    app = create_app(enabled_settings)

    with patch("logvault.api.main.open_redis", return_value=fake_redis):
        async with lifespan(app):
            assert app.state.context.dispatcher.running
            assert app.state.listener._udp_transport is not None

    assert not app.state.context.dispatcher.running
    assert app.state.listener._udp_transport is None
    fake_redis.aclose.assert_awaited_once()


async def test_listener_bind_failure_releases_resources(enabled_settings: Settings, fake_redis) -> None:
    fake_redis.aclose = AsyncMock()
    app = create_app(enabled_settings)

    with (
        patch("logvault.api.main.open_redis", return_value=fake_redis),
        patch("logvault.api.main.SyslogListener.start", AsyncMock(side_effect=OSError("address in use"))),
    ):
        with pytest.raises(OSError, match="address in use"):
            async with lifespan(app):
                pass

    assert not app.state.context.dispatcher.running
    fake_redis.aclose.assert_awaited_once()
