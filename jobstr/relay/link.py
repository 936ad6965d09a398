# jobstr/relay/link.py
# SPDX-License-Identifier: Apache-2.0
"""
One logical connection to one Nostr relay.

- connect(): a single websocket open attempt (TransientNetworkError on failure)
- subscribe(*filters): lazy, unbounded stream of RawEvent / CAUGHT_UP items;
  reconnects forever with full-jitter backoff and re-sends the REQ each time
- close(): stops retrying, interrupts any backoff sleep, closes the socket

Malformed frames are logged and counted; they never end the stream.
"""

from __future__ import annotations

import asyncio
import enum
import functools
import logging
import uuid
from dataclasses import asdict, dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Union

import websockets
from websockets.exceptions import WebSocketException

from jobstr.exceptions import MalformedEvent, TransientNetworkError

from .backoff import Backoff
from .protocol import (
    CAUGHT_UP,
    RawEvent,
    SubscriptionFilter,
    _CaughtUp,
    decode_frame,
    encode_close,
    encode_req,
    has_valid_id,
)

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[Any]]
RelayItem = Union[RawEvent, _CaughtUp]

_NETWORK_ERRORS = (WebSocketException, OSError, asyncio.TimeoutError, ValueError)


class RelayStatus(str, enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    BACKOFF = "backoff"
    CLOSED = "closed"


@dataclass
class LinkMetrics:
    connects: int = 0
    disconnects: int = 0
    frames: int = 0
    events: int = 0
    malformed: int = 0
    caught_up: bool = False
    last_error: Optional[str] = None


async def _ws_connect(url: str, *, max_size: int, open_timeout: float) -> Any:
    return await websockets.connect(
        url,
        max_size=max_size,
        open_timeout=open_timeout,
        ping_interval=20,
        ping_timeout=20,
        close_timeout=2,
    )


class RelayLink:
    def __init__(
        self,
        url: str,
        *,
        connector: Optional[Connector] = None,
        backoff: Optional[Backoff] = None,
        connect_timeout: float = 5.0,
        max_frame_bytes: int = 1 << 20,
        verify_ids: bool = True,
    ):
        self.url = url
        self.connect_timeout = connect_timeout
        self.max_frame_bytes = max_frame_bytes
        self.verify_ids = verify_ids
        self.backoff = backoff or Backoff()
        self.sub_id = f"jobstr-{uuid.uuid4().hex[:12]}"
        self.status = RelayStatus.IDLE
        self.metrics = LinkMetrics()
        self._connector: Connector = connector or functools.partial(
            _ws_connect, max_size=max_frame_bytes, open_timeout=connect_timeout
        )
        self._filters: List[SubscriptionFilter] = []
        self._conn: Any = None
        self._closing = asyncio.Event()

    # ---------------------------
    # Public API
    # ---------------------------
    async def connect(self) -> Any:
        """Open one websocket connection. Raises TransientNetworkError."""
        self.status = RelayStatus.CONNECTING
        try:
            conn = await asyncio.wait_for(self._connector(self.url), timeout=self.connect_timeout)
        except _NETWORK_ERRORS as e:
            raise TransientNetworkError(self.url, f"connect failed: {e or type(e).__name__}") from e
        self._conn = conn
        self.status = RelayStatus.CONNECTED
        self.metrics.connects += 1
        logger.info("Connected to relay %s", self.url)
        return conn

    def subscribe(self, *filters: SubscriptionFilter) -> AsyncIterator[RelayItem]:
        """Remember the filters (re-sent on every reconnect) and return the stream."""
        if not filters:
            raise ValueError("subscribe() needs at least one filter")
        self._filters = list(filters)
        return self._stream()

    async def close(self) -> None:
        self._closing.set()
        conn = self._conn
        self._conn = None
        if conn is not None:
            await self._drop(conn, send_close=True)
        self.status = RelayStatus.CLOSED

    @property
    def closed(self) -> bool:
        return self._closing.is_set()

    def describe(self) -> Dict[str, Any]:
        data = {"url": self.url, "status": self.status.value}
        data.update(asdict(self.metrics))
        return data

    # ---------------------------
    # Stream internals
    # ---------------------------
    async def _stream(self) -> AsyncIterator[RelayItem]:
        while not self._closing.is_set():
            try:
                conn = await self.connect()
            except TransientNetworkError as e:
                self._note_failure(e)
                if await self._sleep_backoff():
                    break
                continue

            if self._closing.is_set():
                await self._drop(conn)
                break

            try:
                async for item in self._session(conn):
                    yield item
            except TransientNetworkError as e:
                if not self._closing.is_set():
                    self.metrics.disconnects += 1
                    self._note_failure(e)
            finally:
                if self._conn is conn:
                    self._conn = None
                await self._drop(conn)

            if await self._sleep_backoff():
                break

        self.status = RelayStatus.CLOSED
        logger.info("Relay link %s closed", self.url)

    async def _session(self, conn: Any) -> AsyncIterator[RelayItem]:
        await self._send(conn, encode_req(self.sub_id, self._filters))
        first = True
        while True:
            frame = await self._recv(conn)
            if first:
                # a relay that answers is healthy again
                self.backoff.reset()
                first = False
            self.metrics.frames += 1
            try:
                item = self._handle(frame)
            except MalformedEvent as e:
                self.metrics.malformed += 1
                logger.debug("Dropped malformed frame from %s: %s", self.url, e)
                continue
            if item is not None:
                yield item

    def _handle(self, frame: Any) -> Optional[RelayItem]:
        size = len(frame.encode("utf-8")) if isinstance(frame, str) else len(frame)
        if size > self.max_frame_bytes:
            raise MalformedEvent(f"frame too large ({size} bytes)")
        msg = decode_frame(frame)
        kind = msg[0]

        if kind == "EVENT":
            if len(msg) < 3:
                raise MalformedEvent("EVENT frame without payload")
            if msg[1] != self.sub_id:
                return None
            event = RawEvent.from_wire(msg[2])
            if self.verify_ids and not has_valid_id(event):
                raise MalformedEvent(f"event {event.id[:12]} id does not match its content hash")
            self.metrics.events += 1
            return event

        if kind == "EOSE":
            if len(msg) >= 2 and msg[1] != self.sub_id:
                return None
            if not self.metrics.caught_up:
                logger.info("Relay %s caught up (EOSE)", self.url)
            self.metrics.caught_up = True
            return CAUGHT_UP

        if kind == "CLOSED":
            if len(msg) >= 2 and msg[1] == self.sub_id:
                reason = msg[2] if len(msg) >= 3 else ""
                raise TransientNetworkError(self.url, f"subscription closed by relay: {reason}")
            return None

        if kind == "NOTICE":
            logger.info("NOTICE from %s: %s", self.url, msg[1] if len(msg) > 1 else "")
            return None

        # OK, AUTH, COUNT and anything newer: not used by a read-only subscriber
        logger.debug("Ignoring %s frame from %s", kind, self.url)
        return None

    async def _send(self, conn: Any, data: str) -> None:
        try:
            await conn.send(data)
        except _NETWORK_ERRORS as e:
            raise TransientNetworkError(self.url, f"send failed: {e or type(e).__name__}") from e

    async def _recv(self, conn: Any) -> Any:
        try:
            return await conn.recv()
        except _NETWORK_ERRORS as e:
            raise TransientNetworkError(self.url, f"connection lost: {e or type(e).__name__}") from e

    async def _drop(self, conn: Any, send_close: bool = False) -> None:
        try:
            if send_close:
                await asyncio.wait_for(conn.send(encode_close(self.sub_id)), timeout=1.0)
            await conn.close()
        except _NETWORK_ERRORS as e:
            logger.debug("Error while closing %s: %s", self.url, e)

    def _note_failure(self, exc: TransientNetworkError) -> None:
        self.metrics.last_error = exc.message
        logger.warning("Relay %s unavailable: %s", self.url, exc.message)

    async def _sleep_backoff(self) -> bool:
        """Wait out the next backoff delay. Returns True if close() was called meanwhile."""
        if self._closing.is_set():
            return True
        delay = self.backoff.next_delay()
        self.status = RelayStatus.BACKOFF
        logger.debug("Reconnecting to %s in %.2fs (attempt %d)", self.url, delay, self.backoff.attempts)
        try:
            await asyncio.wait_for(self._closing.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True
