"""
Stub protocol engine for testing and offline development.

Deterministic, never touches the network. Tests drive every lifecycle
transition through the emit_* helpers.
"""

import asyncio
from typing import Any, Dict, List, Optional

from services.credentials.base import AuthState

from .base import DisconnectReason, EngineError, EngineSocket, ProtocolEngine


class StubSocket(EngineSocket):
    """Fake socket recording everything the gateway asks of it."""

    def __init__(self, session_id: str, auth: AuthState, auto_qr: bool = False):
        super().__init__(session_id, auth)
        self.auto_qr = auto_qr
        self.started = False
        self.closed = False
        self.logged_out = False
        self.fail_sends = False
        self.fail_logout = False
        self.sent: List[Dict[str, Any]] = []
        self._qr_count = 0

    async def start(self) -> None:
        self.started = True
        is_new = self.auth.is_new
        if self.auth.save is not None and is_new:
            await self.auth.save({"creds": {"registered": False, "session": self.session_id}})
        if self.auto_qr:
            # new devices pair, stored ones reopen straight away
            asyncio.get_running_loop().create_task(self.emit_qr() if is_new else self.emit_open())

    async def send_message(self, jid: str, content: Dict[str, Any]) -> Dict[str, Any]:
        if self.closed:
            raise EngineError("Connection closed")
        if self.fail_sends:
            raise EngineError("Stub send failure")
        message_id = f"stub-{len(self.sent) + 1}"
        self.sent.append({"jid": jid, "content": content, "id": message_id})
        return {"id": message_id}

    async def logout(self) -> None:
        if self.fail_logout:
            raise EngineError("Stub logout failure")
        self.logged_out = True
        await self.emit_close(DisconnectReason.LOGGED_OUT)
        self.closed = True

    async def close(self) -> None:
        self.closed = True

    # ------------------------------------------------------------------
    # Test drivers
    # ------------------------------------------------------------------

    async def emit_qr(self, payload: Optional[str] = None) -> None:
        self._qr_count += 1
        payload = payload or f"stub-pairing:{self.session_id}:{self._qr_count}"
        await self._dispatch("connection.update", {"qr": payload})

    async def emit_open(self, user: Optional[Dict[str, Any]] = None) -> None:
        self.user = user or {"id": f"{self.session_id}@s.whatsapp.net", "name": "Stub"}
        if self.auth.save is not None:
            await self.auth.save({"creds": {"registered": True, "me": self.user}})
        await self._dispatch("connection.update", {"connection": "open"})

    async def emit_close(self, status_code: Optional[int] = None, message: str = "") -> None:
        await self._dispatch("connection.update", {
            "connection": "close",
            "lastDisconnect": {
                "error": {"output": {"statusCode": status_code}, "message": message},
            },
        })

    async def emit_messages(self, messages: List[Dict[str, Any]], upsert_type: str = "notify") -> None:
        await self._dispatch("messages.upsert", {"messages": messages, "type": upsert_type})


class StubEngine(ProtocolEngine):
    """Creates StubSockets and keeps every one for inspection."""

    def __init__(self, auto_qr: bool = False):
        self.auto_qr = auto_qr
        self.sockets: List[StubSocket] = []
        self.failures: List[Exception] = []

    async def create_socket(self, session_id: str, auth: AuthState) -> StubSocket:
        await asyncio.sleep(0)
        if self.failures:
            raise self.failures.pop(0)
        socket = StubSocket(session_id, auth, auto_qr=self.auto_qr)
        self.sockets.append(socket)
        return socket

    def sockets_for(self, session_id: str) -> List[StubSocket]:
        return [socket for socket in self.sockets if socket.session_id == session_id]

    def latest(self, session_id: str) -> StubSocket:
        sockets = self.sockets_for(session_id)
        if not sockets:
            raise LookupError(f"No socket created for {session_id}")
        return sockets[-1]
