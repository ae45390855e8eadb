"""Tests for the in-memory session store."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from logvault.core.sessions import SessionStore, run_sweeper


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sessions(clock: FakeClock) -> SessionStore:
    return SessionStore(expiry=timedelta(hours=1), clock=clock)


def test_create_issues_unique_tokens(sessions: SessionStore) -> None:
    tokens = {sessions.create() for _ in range(100)}
    assert len(tokens) == 100
    assert len(sessions) == 100


def test_validate_known_token(sessions: SessionStore) -> None:
    token = sessions.create()
    assert sessions.validate(token)
    assert not sessions.validate("unknown")
    assert not sessions.validate(None)
    assert not sessions.validate("")


def test_expired_token_removed_on_lookup(sessions: SessionStore, clock: FakeClock) -> None:
    token = sessions.create()
    clock.advance(hours=1)
    assert not sessions.validate(token)
    assert len(sessions) == 0


def test_validation_slides_expiry(sessions: SessionStore, clock: FakeClock) -> None:
    token = sessions.create()
    clock.advance(minutes=50)
    assert sessions.validate(token)
    clock.advance(minutes=50)
    assert sessions.validate(token)


def test_validate_without_renew(sessions: SessionStore, clock: FakeClock) -> None:
    token = sessions.create()
    clock.advance(minutes=50)
    assert sessions.validate(token, renew=False)
    clock.advance(minutes=20)
    assert not sessions.validate(token)


def test_revoke(sessions: SessionStore) -> None:
    token = sessions.create()
    sessions.revoke(token)
    sessions.revoke(token)
    sessions.revoke(None)
    assert not sessions.validate(token)


def test_sweep_removes_only_expired(sessions: SessionStore, clock: FakeClock) -> None:
    old = sessions.create()
    clock.advance(minutes=30)
    fresh = sessions.create()
    clock.advance(minutes=31)

    assert sessions.sweep() == 1
    assert sessions.validate(fresh)
    assert not sessions.validate(old)


async def test_sweeper_runs_until_shutdown(sessions: SessionStore, clock: FakeClock) -> None:
    sessions.create()
    clock.advance(hours=2)
    shutdown = asyncio.Event()

    task = asyncio.create_task(run_sweeper(sessions, 0.01, shutdown))
    for _ in range(100):
        if len(sessions) == 0:
            break
        await asyncio.sleep(0.01)
    shutdown.set()
    await asyncio.wait_for(task, timeout=1)

    assert len(sessions) == 0


async def test_sweeper_cancellation_propagates(sessions: SessionStore) -> None:
    task = asyncio.create_task(run_sweeper(sessions, 60, asyncio.Event()))
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
