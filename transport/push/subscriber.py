"""
WebSocket push subscriber.

Each connected client gets a bounded outbound queue drained by its own
writer task, so the registry never waits on a slow or dead socket and a
client sees events in the order they were published.
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import WebSocket

from sessions.delivery import PushSubscriber

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 256


class WebSocketSubscriber(PushSubscriber):
    """Push subscriber bound to one accepted WebSocket."""

    def __init__(self, websocket: WebSocket, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.websocket = websocket
        self.subscriber_id = uuid.uuid4().hex
        self.closed = False
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._writer: Optional[asyncio.Task] = None

    def start(self) -> None:
        self._writer = asyncio.create_task(self._write_loop())

    def deliver(self, event: str, data: Dict[str, Any]) -> None:
        if self.closed:
            return
        try:
            self._queue.put_nowait({"event": event, "data": data})
        except asyncio.QueueFull:
            logger.warning(
                f"Push queue full for client {self.subscriber_id}, dropping '{event}'",
                extra={"subscriber_id": self.subscriber_id},
            )

    async def _write_loop(self) -> None:
        while True:
            frame = await self._queue.get()
            try:
                await self.websocket.send_json(frame)
            except Exception as e:
                # Client went away; registry state is unaffected
                logger.info(f"Push client {self.subscriber_id} unreachable: {e}")
                self.closed = True
                return

    async def close(self) -> None:
        self.closed = True
        writer, self._writer = self._writer, None
        if writer is not None and not writer.done():
            writer.cancel()
            try:
                await writer
            except asyncio.CancelledError:
                pass
