"""
Connection handle.

Wraps one engine socket for one session and translates the engine's
event shapes into the registry's EventKind vocabulary. Holds no
lifecycle logic: it never reconnects, never touches registry state.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from services.engine.base import DisconnectReason, EngineSocket

from .events import (
    CloseEvent,
    ConnectionEvent,
    EventKind,
    MessagesEvent,
    OpenEvent,
    QrEvent,
)

logger = logging.getLogger(__name__)

EventListener = Callable[[ConnectionEvent], Union[None, Awaitable[None]]]


def _close_details(update: Dict[str, Any]) -> tuple[Optional[int], str]:
    error = ((update.get("lastDisconnect") or {}).get("error")) or {}
    status_code = (error.get("output") or {}).get("statusCode")
    return status_code, error.get("message", "")


class ConnectionHandle:
    """
    One live protocol connection, exclusively owned by a registry entry.

    Exposes send/logout/close and per-kind subscriptions.
    """

    def __init__(self, session_id: str, socket: EngineSocket):
        self.session_id = session_id
        self.socket = socket
        self._listeners: Dict[EventKind, List[EventListener]] = {kind: [] for kind in EventKind}
        socket.on("connection.update", self._on_connection_update)
        socket.on("messages.upsert", self._on_messages_upsert)

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        """Identity of the linked account, once open."""
        return self.socket.user

    def subscribe(self, kind: EventKind, listener: EventListener) -> None:
        self._listeners[EventKind(kind)].append(listener)

    async def start(self) -> None:
        await self.socket.start()

    async def send(self, jid: str, content: Dict[str, Any]) -> Dict[str, Any]:
        return await self.socket.send_message(jid, content)

    async def logout(self) -> None:
        await self.socket.logout()

    async def close(self) -> None:
        await self.socket.close()

    async def _emit(self, event: ConnectionEvent) -> None:
        for listener in list(self._listeners[event.kind]):
            result = listener(event)
            if inspect.isawaitable(result):
                await result

    async def _on_connection_update(self, update: Dict[str, Any]) -> None:
        qr = update.get("qr")
        if qr:
            await self._emit(QrEvent(payload=qr))

        connection = update.get("connection")
        if connection == "open":
            await self._emit(OpenEvent(identity=self.socket.user))
        elif connection == "close":
            status_code, reason = _close_details(update)
            await self._emit(CloseEvent(
                status_code=status_code,
                should_reconnect=status_code != DisconnectReason.LOGGED_OUT,
                reason=reason,
            ))

    async def _on_messages_upsert(self, data: Dict[str, Any]) -> None:
        messages = data.get("messages")
        if not isinstance(messages, list):
            logger.debug(f"Ignoring malformed upsert for session {self.session_id}")
            return
        await self._emit(MessagesEvent(messages=messages, upsert_type=data.get("type", "notify")))
