"""
Protocol engine abstract interface.

Role: the opaque WhatsApp protocol stack (pairing, encryption, framing).
The gateway never speaks the wire protocol; it consumes an engine socket
that emits lifecycle/content events and accepts send/logout.

Event names and payload shapes follow the engine's own vocabulary:
- "connection.update": {"connection": "open"|"close"|"connecting",
                        "qr": str, "lastDisconnect": {"error": {...}}}
- "messages.upsert":   {"messages": [...], "type": "notify"|"append"}

Adapting these shapes is the ConnectionHandle's job, not the engine's.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Union

if TYPE_CHECKING:
    from services.credentials.base import AuthState

logger = logging.getLogger(__name__)

ENGINE_EVENTS = ("connection.update", "messages.upsert")

EngineListener = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]


class DisconnectReason(IntEnum):
    """Close status codes reported by the engine."""

    LOGGED_OUT = 401
    FORBIDDEN = 403
    CONNECTION_LOST = 408
    TIMED_OUT = 408
    MULTIDEVICE_MISMATCH = 411
    CONNECTION_CLOSED = 428
    CONNECTION_REPLACED = 440
    BAD_SESSION = 500
    UNAVAILABLE_SERVICE = 503
    RESTART_REQUIRED = 515


class EngineError(Exception):
    """Engine failed to start or to carry out a request."""
    pass


class EngineSocket(ABC):
    """
    One live protocol connection for one session.

    Listeners are awaited in registration order, one event at a time,
    so a session's events reach the registry in emission order.
    """

    def __init__(self, session_id: str, auth: "AuthState"):
        self.session_id = session_id
        self.auth = auth
        self.user: Optional[Dict[str, Any]] = None
        self._listeners: Dict[str, List[EngineListener]] = {name: [] for name in ENGINE_EVENTS}

    def on(self, event_name: str, listener: EngineListener) -> None:
        """Register a listener for an engine event."""
        if event_name not in self._listeners:
            raise ValueError(f"Unknown engine event: {event_name}")
        self._listeners[event_name].append(listener)

    async def _dispatch(self, event_name: str, payload: Dict[str, Any]) -> None:
        for listener in list(self._listeners.get(event_name, [])):
            try:
                result = listener(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    f"Listener for {event_name} failed: {e}",
                    exc_info=True,
                    extra={"session_id": self.session_id},
                )

    @abstractmethod
    async def start(self) -> None:
        """Begin connecting. Called after listeners are registered."""
        raise NotImplementedError

    @abstractmethod
    async def send_message(self, jid: str, content: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send content to a protocol address.

        Raises:
            EngineError: send rejected or failed
        """
        raise NotImplementedError

    @abstractmethod
    async def logout(self) -> None:
        """
        Unlink the device. The engine emits a logged-out close afterwards.

        Raises:
            EngineError: logout failed
        """
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        """Drop the connection without logging out. Idempotent."""
        raise NotImplementedError


class ProtocolEngine(ABC):
    """Factory for engine sockets."""

    @abstractmethod
    async def create_socket(self, session_id: str, auth: "AuthState") -> EngineSocket:
        """
        Build (but do not start) a socket for a session.

        Raises:
            EngineError: engine unavailable
        """
        raise NotImplementedError
