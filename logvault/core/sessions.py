"""In-memory browser session store.

Maps opaque session tokens to expiry instants. All access goes through a
single lock. Expiry is checked lazily on lookup and a valid lookup slides
the expiry forward; ``sweep()`` removes expired entries in bulk and is run
periodically by ``run_sweeper``.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "logvault_session"
TOKEN_BYTES = 32


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionStore:
    """Token → expiry mapping guarded by a mutual-exclusion lock.

    Args:
        expiry: Lifetime of a session after creation or last use.
        clock: Returns the current time; replaceable in tests.
    """

    def __init__(self, expiry: timedelta = timedelta(hours=24), clock: Callable[[], datetime] = _utcnow) -> None:
        self.expiry = expiry
        self._clock = clock
        self._sessions: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def create(self) -> str:
        """Issue a new URL-safe session token."""
        token = secrets.token_urlsafe(TOKEN_BYTES)
        with self._lock:
            self._sessions[token] = self._clock() + self.expiry
        return token

    def validate(self, token: str | None, renew: bool = True) -> bool:
        """Return True if the token is known and unexpired.

        Expired tokens are removed on the spot. Valid tokens have their
        expiry pushed forward unless ``renew`` is False.
        """
        if not token:
            return False
        now = self._clock()
        with self._lock:
            expires_at = self._sessions.get(token)
            if expires_at is None:
                return False
            if now >= expires_at:
                del self._sessions[token]
                return False
            if renew:
                self._sessions[token] = now + self.expiry
        return True

    def revoke(self, token: str | None) -> None:
        if not token:
            return
        with self._lock:
            self._sessions.pop(token, None)

    def sweep(self) -> int:
        """Remove every expired session. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [token for token, expires_at in self._sessions.items() if now >= expires_at]
            for token in expired:
                del self._sessions[token]
        return len(expired)


async def run_sweeper(store: SessionStore, interval_seconds: float, shutdown_event: asyncio.Event) -> None:
    """Periodically sweep expired sessions until shutdown."""
    while not shutdown_event.is_set():
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval_seconds)
        except TimeoutError:
            removed = store.sweep()
            if removed:
                logger.debug("Swept %d expired sessions", removed)
