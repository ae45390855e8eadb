"""Bounded notification dispatch to an external HTTP endpoint.

``notify()`` never blocks the caller: payloads go onto a bounded
``asyncio.Queue`` drained by a fixed pool of worker tasks. Each delivery is
one HTTP request with a per-call timeout. Failures are logged and never
retried; a full queue drops the payload.

Payload shape sent by the pipeline and the web API::

    {"key": "alarm:disk1", "message": "disk1 usage 97%", "status": "ALARM"}
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import httpx

from logvault.core.config import Settings

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Worker pool delivering JSON payloads to the configured endpoint.

    Args:
        settings: Application settings (``external_api_*`` fields).
        client: Optional shared ``httpx.AsyncClient``. When omitted the
            dispatcher creates one on ``start()`` and closes it on ``stop()``.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self.enabled = settings.external_api_enabled
        self.url = settings.external_api_url
        self.method = settings.external_api_method
        self.bearer_token = settings.external_api_bearer_token
        self.timeout = settings.external_api_timeout_seconds
        self.verify_tls = settings.external_api_verify_tls
        self.worker_count = settings.external_api_worker_count
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=settings.external_api_queue_size)
        self._workers: list[asyncio.Task[None]] = []
        self._client = client
        self._owns_client = client is None
        self.sent = 0
        self.failed = 0
        self.dropped = 0

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    async def start(self) -> None:
        """Spawn the worker pool. No-op when notifications are disabled."""
        if not self.enabled:
            logger.info("External API notifications disabled")
            return
        if self._workers:
            return
        if not self.url:
            logger.warning("External API enabled but no URL configured; calls will fail")
        if self._client is None:
            self._client = httpx.AsyncClient(verify=self.verify_tls, timeout=self.timeout)
            self._owns_client = True
        for i in range(self.worker_count):
            self._workers.append(asyncio.create_task(self._worker(f"notify-{i}")))
        logger.info("Started %d notification workers (%s %s)", self.worker_count, self.method, self.url)

    def notify(self, payload: dict[str, Any]) -> bool:
        """Queue a payload for delivery without blocking.

        Returns:
            True if queued, False if notifications are disabled or the
            queue is full.
        """
        if not self.enabled:
            return False
        try:
            self._queue.put_nowait(payload)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("Notification queue full; dropped payload for key %s", payload.get("key"))
            return False
        return True

    async def send(self, payload: dict[str, Any]) -> bool:
        """Deliver one payload. Never raises for delivery failures.

        Returns:
            True on a status below 400, False otherwise.
        """
        try:
            body = json.dumps(payload)
        except (TypeError, ValueError):
            logger.exception("Error encoding external API payload")
            self.failed += 1
            return False

        headers = {"Content-Type": "application/json"}
        if self.bearer_token:
            headers["Authorization"] = f"Bearer {self.bearer_token}"

        try:
            if self._client is not None:
                response = await self._client.request(
                    self.method, self.url, content=body, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(verify=self.verify_tls, timeout=self.timeout) as client:
                    response = await client.request(self.method, self.url, content=body, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Error calling external API: %s", exc)
            self.failed += 1
            return False

        if response.status_code >= 400:
            logger.warning("External API call failed with status: %d", response.status_code)
            self.failed += 1
            return False

        logger.info("Successfully called external API, status: %d", response.status_code)
        self.sent += 1
        return True

    async def _worker(self, name: str) -> None:
        logger.debug("Notification worker %s started", name)
        while True:
            payload = await self._queue.get()
            try:
                await self.send(payload)
            except Exception:  # Intentionally broad: worker loop
                logger.exception("Notification worker %s failed", name)
            finally:
                self._queue.task_done()

    async def stop(self, drain_timeout: float = 5.0) -> None:
        """Drain the queue for up to ``drain_timeout`` seconds, then stop workers.

        Payloads still queued after the timeout are discarded.
        """
        if self._workers:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=drain_timeout)
            except TimeoutError:
                logger.warning("Notification queue not drained in %.1fs", drain_timeout)
            for task in self._workers:
                task.cancel()
            await asyncio.gather(*self._workers, return_exceptions=True)
            self._workers = []

        discarded = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
            discarded += 1
        if discarded:
            self.dropped += discarded
            logger.warning("Discarded %d undelivered notifications on shutdown", discarded)

        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        logger.info("Notification dispatcher stopped (sent=%d failed=%d dropped=%d)", self.sent, self.failed, self.dropped)
