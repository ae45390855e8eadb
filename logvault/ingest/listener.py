"""Syslog listener: UDP/TCP transports feeding a single consumer.

Transports only enqueue raw datagrams onto a bounded inbound queue. One
consumer loop (``run``) takes them in arrival order, parses each into an
envelope and awaits the classifier before taking the next one, so an ALARM
followed by a CLEAR for the same token is always applied in that order.

Delivery is at-most-once: a full queue, a parse failure or a malformed
envelope drops the datagram with a log entry and the loop keeps going.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from logvault.core.config import Settings
from logvault.ingest.classifier import Classification, MessageClassifier
from logvault.ingest.envelope import MalformedEnvelopeError, resolve_envelope
from logvault.ingest.syslog import SyslogParseError, parse_message

logger = logging.getLogger(__name__)

# How often the consumer re-checks the shutdown event while idle
_IDLE_POLL_SECONDS = 1.0
# Upper bound on waiting for TCP connections to finish closing
_CLOSE_TIMEOUT_SECONDS = 5.0


class SyslogDatagramProtocol(asyncio.DatagramProtocol):
    """UDP protocol handing every datagram to the listener queue."""

    def __init__(self, listener: SyslogListener) -> None:
        self.listener = listener

    def datagram_received(self, data: bytes, addr: Any) -> None:
        self.listener.enqueue(data, _format_addr(addr))

    def error_received(self, exc: Exception) -> None:
        logger.warning("Syslog UDP socket error: %s", exc)


def _format_addr(addr: Any) -> str:
    if isinstance(addr, tuple) and len(addr) >= 2:
        return f"{addr[0]}:{addr[1]}"
    return str(addr)


class SyslogListener:
    """Accept syslog datagrams and feed them to the classifier sequentially.

    Args:
        settings: Application settings (``syslog_*`` fields).
        classifier: Classifier applying each envelope to the store.
    """

    def __init__(self, settings: Settings, classifier: MessageClassifier) -> None:
        self.host = settings.syslog_host
        self.port = settings.syslog_port
        self.protocol = settings.syslog_protocol
        self.format = settings.syslog_format
        self.precedence = settings.syslog_tag_precedence
        self.classifier = classifier
        self._queue: asyncio.Queue[tuple[bytes, str]] = asyncio.Queue(maxsize=settings.syslog_queue_size)
        self._udp_transport: asyncio.DatagramTransport | None = None
        self._tcp_server: asyncio.Server | None = None
        self._tcp_clients: set[asyncio.StreamWriter] = set()
        self._closing = False
        self.received = 0
        self.processed = 0
        self.dropped = 0

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def enqueue(self, data: bytes, source: str = "") -> bool:
        """Put one raw datagram on the inbound queue without blocking."""
        if self._closing:
            return False
        self.received += 1
        try:
            self._queue.put_nowait((data, source))
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("Syslog inbound queue full; dropped datagram from %s", source or "unknown")
            return False
        return True

    async def start(self) -> None:
        """Bind the configured transports."""
        loop = asyncio.get_running_loop()
        if self.protocol in ("udp", "both"):
            transport, _protocol = await loop.create_datagram_endpoint(
                lambda: SyslogDatagramProtocol(self),
                local_addr=(self.host, self.port),
            )
            self._udp_transport = transport
            logger.info("Syslog UDP listener bound on %s:%d", self.host, self.port)
        if self.protocol in ("tcp", "both"):
            self._tcp_server = await asyncio.start_server(self._handle_client, self.host, self.port)
            logger.info("Syslog TCP listener bound on %s:%d", self.host, self.port)

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Read newline-delimited syslog frames from one TCP connection."""
        source = _format_addr(writer.get_extra_info("peername"))
        if self._closing:
            writer.close()
            return
        self._tcp_clients.add(writer)
        logger.debug("Syslog TCP client connected: %s", source)
        try:
            while not self._closing:
                line = await reader.readline()
                if not line or self._closing:
                    break
                if line.strip():
                    self.enqueue(line, source)
        except (ConnectionError, asyncio.LimitOverrunError, ValueError) as exc:
            logger.warning("Syslog TCP client %s error: %s", source, exc)
        finally:
            self._tcp_clients.discard(writer)
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError) as exc:
                logger.debug("Syslog TCP client %s closed with error: %s", source, exc)
            logger.debug("Syslog TCP client disconnected: %s", source)

    async def handle(self, data: bytes, source: str = "") -> Classification | None:
        """Decode one datagram and pass its envelope to the classifier."""
        try:
            fields = parse_message(data, self.format)
        except SyslogParseError as exc:
            self.dropped += 1
            logger.warning("Dropping unparseable syslog message from %s: %s", source or "unknown", exc)
            return None

        try:
            envelope = resolve_envelope(fields, self.precedence)
        except MalformedEnvelopeError as exc:
            self.dropped += 1
            logger.warning("Dropping syslog message from %s: %s", source or "unknown", exc)
            return None

        if envelope.is_empty:
            self.dropped += 1
            logger.debug("Dropping syslog message from %s with empty content", source or "unknown")
            return None

        result = await self.classifier.process(envelope)
        self.processed += 1
        return result

    async def run(self, shutdown_event: asyncio.Event | None = None) -> None:
        """Consume the inbound queue until shutdown.

        Stops when shutdown_event is set or the task is cancelled.
        """
        if shutdown_event is None:
            shutdown_event = asyncio.Event()
        logger.info("Syslog consumer started (format=%s, precedence=%s)", self.format, self.precedence)

        try:
            while not shutdown_event.is_set():
                try:
                    data, source = await asyncio.wait_for(self._queue.get(), timeout=_IDLE_POLL_SECONDS)
                except TimeoutError:
                    continue
                try:
                    await self.handle(data, source)
                except Exception:  # Intentionally broad: consumer loop
                    logger.exception("Failed to process syslog message from %s", source or "unknown")
                finally:
                    self._queue.task_done()
        finally:
            logger.info(
                "Syslog consumer stopped (received=%d processed=%d dropped=%d)",
                self.received,
                self.processed,
                self.dropped,
            )

    async def stop(self) -> None:
        """Close the transports and open TCP connections.

        Nothing is enqueued once this has been called. Queued datagrams are
        not processed.
        """
        self._closing = True
        if self._udp_transport is not None:
            self._udp_transport.close()
            self._udp_transport = None
        if self._tcp_server is not None:
            server = self._tcp_server
            self._tcp_server = None
            server.close()
            for writer in list(self._tcp_clients):
                writer.close()
            try:
                await asyncio.wait_for(server.wait_closed(), timeout=_CLOSE_TIMEOUT_SECONDS)
            except TimeoutError:
                logger.warning("Syslog TCP connections not closed in %.1fs", _CLOSE_TIMEOUT_SECONDS)
        logger.info("Syslog listener closed")
