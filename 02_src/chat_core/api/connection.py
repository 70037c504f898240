"""WebSocket-backed chat connection."""

import asyncio
import contextlib
import uuid
from typing import Any

from fastapi import WebSocket

from ..errors import TransportError
from ..logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_OUTBOUND_QUEUE = 1000


class WebSocketConnection:
    """
    Outbound frames go through a bounded queue drained by a writer task, so
    send() never waits on the socket. A full queue or a failed write marks the
    connection dead and further sends raise TransportError.
    """

    def __init__(
        self,
        websocket: WebSocket,
        connection_id: str | None = None,
        max_queue: int = DEFAULT_OUTBOUND_QUEUE,
    ):
        self.connection_id = connection_id or str(uuid.uuid4())
        self._websocket = websocket
        self._queue: asyncio.Queue[dict] = asyncio.Queue(maxsize=max_queue)
        self._writer: asyncio.Task | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Start the writer task."""
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain())

    async def send(self, event: str, payload: Any) -> None:
        if self._closed:
            raise TransportError("Connection closed")
        try:
            self._queue.put_nowait({"event": event, "data": payload})
        except asyncio.QueueFull:
            self._closed = True
            raise TransportError("Outbound queue full") from None

    async def close(self) -> None:
        """Stop the writer task; queued frames are discarded."""
        self._closed = True
        if self._writer is not None:
            self._writer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._writer
            self._writer = None

    async def _drain(self) -> None:
        while True:
            frame = await self._queue.get()
            try:
                await self._websocket.send_json(frame)
            except Exception as e:
                logger.warning(
                    "WebSocket write failed, closing connection %s: %s",
                    self.connection_id,
                    e,
                )
                self._closed = True
                return
