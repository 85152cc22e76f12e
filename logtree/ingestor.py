"""Transport ingestor — reads the server-sent-events log stream into the buffer."""

import asyncio
import logging
import random
from enum import Enum
from typing import Callable, Optional

import aiohttp

from logtree.buffer import EntryBuffer
from logtree.decoder import DecodeError, decode
from logtree.metrics import Metrics
from logtree.sse import EventStreamParser, ServerEvent

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    CLOSED = "closed"


class TransportError(Exception):
    """The stream could not be opened or broke off."""


StatusCallback = Callable[[ConnectionState, Optional[Exception]], None]


class StreamIngestor:
    """Consume one SSE endpoint and append every decodable message to a buffer.

    Malformed messages are logged and dropped. When the connection drops the
    ingestor reports DISCONNECTED and reconnects with exponential backoff and
    jitter, sending the last seen event id back as ``Last-Event-ID``. Entries
    that were already buffered are not appended twice.
    """

    def __init__(
        self,
        url: str,
        buffer: EntryBuffer,
        metrics: Optional[Metrics] = None,
        reconnect: bool = True,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        max_attempts: int = 0,
        connect_timeout: float = 5.0,
        on_status: Optional[StatusCallback] = None,
    ):
        self._url = url
        self._buffer = buffer
        self._metrics = metrics or Metrics()
        self._reconnect = reconnect
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._max_attempts = max_attempts
        self._connect_timeout = connect_timeout
        self._on_status = on_status
        self._parser = EventStreamParser()
        self._session: Optional[aiohttp.ClientSession] = None
        self._task: Optional[asyncio.Task] = None
        self._state = ConnectionState.IDLE
        self._failures = 0
        self._closed = False
        self.last_error: Optional[Exception] = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def metrics(self) -> Metrics:
        return self._metrics

    @property
    def last_event_id(self) -> Optional[str]:
        return self._parser.last_event_id

    async def open(self) -> "StreamIngestor":
        """Start consuming in a background task. Calling it twice is a no-op."""
        if self._closed:
            raise TransportError("ingestor already closed")
        if self._task is None:
            timeout = aiohttp.ClientTimeout(total=None, sock_connect=self._connect_timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._task = asyncio.create_task(self._run())
        return self

    async def wait(self):
        """Wait until the ingestor gives up reconnecting or is closed."""
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def close(self):
        """Stop consuming and release the connection. Idempotent."""
        if self._closed:
            return
        self._closed = True

        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        if self._session is not None:
            await self._session.close()
            self._session = None

        self._set_state(ConnectionState.CLOSED)
        logger.info("Ingestor for %s closed", self._url)

    async def __aenter__(self):
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def handle_event(self, event: ServerEvent):
        """Decode one event and append it. Bad payloads never raise."""
        if self._closed:
            return
        if event.event != "message":
            logger.debug("Ignoring %r event", event.event)
            return

        self._metrics.increment("received")
        try:
            entry = decode(event.data)
        except DecodeError as exc:
            self._metrics.increment("dropped")
            logger.warning("Dropping malformed message: %s", exc)
            return

        self._metrics.increment("decoded")
        if not self._buffer.append(entry):
            self._metrics.increment("duplicates")
            logger.debug("Entry %s already buffered", entry.id)

    async def _run(self):
        while not self._closed:
            self._set_state(ConnectionState.CONNECTING)
            try:
                await self._consume()
                error = TransportError("stream ended")
            except (aiohttp.ClientError, asyncio.TimeoutError, TransportError, ValueError) as exc:
                error = exc
            if self._closed:
                return

            self.last_error = error
            logger.warning("Stream %s disconnected: %s", self._url, error)
            self._set_state(ConnectionState.DISCONNECTED, error)

            if not self._reconnect:
                return
            self._failures += 1
            if self._max_attempts > 0 and self._failures >= self._max_attempts:
                logger.error("Exhausted %d connection attempts to %s", self._max_attempts, self._url)
                return

            delay = self._backoff(self._failures)
            self._metrics.increment("reconnects")
            logger.info("Reconnecting in %.1fs (attempt %d)...", delay, self._failures)
            await asyncio.sleep(delay)

    async def _consume(self):
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        if self._parser.last_event_id:
            headers["Last-Event-ID"] = self._parser.last_event_id

        async with self._session.get(self._url, headers=headers) as resp:
            if resp.status != 200:
                raise TransportError(f"unexpected status {resp.status} from {self._url}")

            self._failures = 0
            self._parser.reset()
            self._set_state(ConnectionState.CONNECTED)
            logger.info("Connected to %s", self._url)

            async for line in resp.content:
                if self._closed:
                    return
                event = self._parser.feed_line(line)
                if event is not None:
                    self.handle_event(event)

    def _backoff(self, attempt: int) -> float:
        base = self._base_delay
        if self._parser.retry is not None:
            base = self._parser.retry / 1000.0
        delay = min(base * (2 ** (attempt - 1)), self._max_delay)
        return delay + random.uniform(0, delay * 0.3)

    def _set_state(self, state: ConnectionState, error: Optional[Exception] = None):
        self._state = state
        if self._on_status is None:
            return
        try:
            self._on_status(state, error)
        except Exception:
            logger.exception("Status callback failed")
