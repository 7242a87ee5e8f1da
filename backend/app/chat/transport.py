"""Per-connection transport handles.

The room coordinator only ever talks to a connection through
:class:`Connection`: ``send`` queues an event and ``close`` queues a close
after everything already queued. Neither call waits on the network, so a
slow or broken client never holds up delivery to the others.

:class:`WebSocketConnection` backs the handle with a bounded outbox and a
writer task that drains it to the socket in order.
"""
import asyncio
import logging
import uuid
from typing import Any, Optional, Protocol

from fastapi import WebSocket

from .protocol import OutboundEvent, envelope

logger = logging.getLogger(__name__)

# Default number of frames buffered per connection
DEFAULT_OUTBOX_SIZE = 256

# WebSocket close code used when rejecting a client (policy violation)
CLOSE_ROOM_FULL = 1008

_CLOSE = object()


class Connection(Protocol):
    """What the coordinator needs from a client connection."""

    connection_id: str

    def send(self, event: OutboundEvent, data: Any) -> None:
        ...

    def close(self, code: int = 1000) -> None:
        ...


class WebSocketConnection:
    """A WebSocket wrapped with an ordered, non-blocking outbox.

    Attributes:
        connection_id: Unique id for the lifetime of the socket.
        closed: True once the socket was closed or a send failed.
    """

    def __init__(
        self,
        websocket: WebSocket,
        connection_id: Optional[str] = None,
        outbox_size: int = DEFAULT_OUTBOX_SIZE,
    ) -> None:
        self.connection_id = connection_id or str(uuid.uuid4())
        self.closed = False
        self._websocket = websocket
        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=outbox_size)
        self._close_code = 1000
        self._closing = False
        self._writer: Optional[asyncio.Task] = None

    def start(self) -> None:
        """Start the writer task. Must be called from the event loop."""
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain())

    def send(self, event: OutboundEvent, data: Any) -> None:
        if self.closed or self._closing:
            return
        try:
            self._outbox.put_nowait(envelope(event, data))
        except asyncio.QueueFull:
            logger.warning(
                "[WS] Outbox full for %s, dropping %s", self.connection_id, event.value
            )

    def close(self, code: int = 1000) -> None:
        if self.closed or self._closing:
            return
        self._closing = True
        self._close_code = code
        if self._outbox.full():
            # Make room for the close marker by discarding the oldest frame.
            dropped = self._outbox.get_nowait()
            logger.warning(
                "[WS] Outbox full for %s, dropping %s before close",
                self.connection_id,
                dropped["event"],
            )
        self._outbox.put_nowait(_CLOSE)

    async def _drain(self) -> None:
        while True:
            item = await self._outbox.get()
            if item is _CLOSE:
                await self._close_socket()
                return
            try:
                await self._websocket.send_json(item)
            except Exception as e:
                logger.debug(f"[WS] Failed to send to {self.connection_id}: {e}")
                self.closed = True
                return

    async def _close_socket(self) -> None:
        self.closed = True
        try:
            await self._websocket.close(code=self._close_code)
        except Exception as e:
            logger.debug(f"[WS] Failed to close {self.connection_id}: {e}")

    async def wait_closed(self) -> None:
        """Wait until the writer has flushed the outbox and finished."""
        if self._writer is not None:
            await self._writer

    async def stop(self) -> None:
        """Stop the writer without flushing (the peer is already gone)."""
        self.closed = True
        if self._writer is not None and not self._writer.done():
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
