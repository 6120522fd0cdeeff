"""
Node.js bridge engine.

Runs one `node bridge.js` subprocess per session. The bridge hosts the
Baileys socket and talks to us over JSON lines:

  stdin  (commands): {"action": "start", "files": {...}}
                     {"action": "send_message", "request_id": ..., "jid": ..., "content": {...}}
                     {"action": "logout", "request_id": ...}
  stdout (events):   {"type": "connection.update", "data": {...}}
                     {"type": "messages.upsert", "data": {...}}
                     {"type": "creds.update", "files": {...}}
                     {"type": "result", "request_id": ..., "ok": bool, "data"|"error": ...}

Credential material never touches disk on the Node side; it arrives with
"start" and leaves through "creds.update" into the CredentialStore.
"""

import asyncio
import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

from services.credentials.base import AuthState
from sessions.errors import AdapterIOFailure

from .base import EngineError, EngineSocket, ProtocolEngine

logger = logging.getLogger(__name__)

DEFAULT_BRIDGE_SCRIPT = Path(__file__).parent / "bridge.js"

# Generous line limit: history syncs arrive as single large frames
_STREAM_LIMIT = 64 * 1024 * 1024


class BridgeSocket(EngineSocket):
    """EngineSocket backed by a Node.js subprocess."""

    def __init__(
        self,
        session_id: str,
        auth: AuthState,
        node_binary: str = "node",
        script: Path = DEFAULT_BRIDGE_SCRIPT,
        request_timeout_s: float = 30.0,
    ):
        super().__init__(session_id, auth)
        self.node_binary = node_binary
        self.script = Path(script)
        self.request_timeout_s = request_timeout_s
        self._process: Optional[asyncio.subprocess.Process] = None
        self._read_task: Optional[asyncio.Task] = None
        self._stderr_task: Optional[asyncio.Task] = None
        self._pending: Dict[str, asyncio.Future] = {}
        self._closing = False

    async def start(self) -> None:
        if self._process is not None:
            raise EngineError("Bridge already started")
        if not self.script.exists():
            raise EngineError(f"Bridge script not found: {self.script}")
        try:
            self._process = await asyncio.create_subprocess_exec(
                self.node_binary,
                str(self.script),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=_STREAM_LIMIT,
            )
        except OSError as e:
            raise EngineError(f"Failed to launch bridge: {e}") from e

        self._read_task = asyncio.create_task(self._read_events())
        self._stderr_task = asyncio.create_task(self._read_stderr())
        await self._write({"action": "start", "session_id": self.session_id, "files": self.auth.files})
        logger.info(
            f"Bridge started for session {self.session_id} (pid={self._process.pid})",
            extra={"session_id": self.session_id},
        )

    async def send_message(self, jid: str, content: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("send_message", jid=jid, content=content)

    async def logout(self) -> None:
        await self._request("logout")

    async def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        process = self._process
        if process is not None and process.returncode is None:
            if process.stdin is not None and not process.stdin.is_closing():
                process.stdin.close()
            try:
                await asyncio.wait_for(process.wait(), timeout=5.0)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
        for future in self._pending.values():
            if not future.done():
                future.set_exception(EngineError("Bridge closed"))
        self._pending.clear()
        for task in (self._read_task, self._stderr_task):
            if task is not None and task is not asyncio.current_task():
                task.cancel()

    # ------------------------------------------------------------------
    # Wire handling
    # ------------------------------------------------------------------

    async def _write(self, command: Dict[str, Any]) -> None:
        process = self._process
        if process is None or process.returncode is not None or process.stdin is None:
            raise EngineError("Bridge is not running")
        process.stdin.write((json.dumps(command) + "\n").encode("utf-8"))
        try:
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise EngineError(f"Bridge pipe broken: {e}") from e

    async def _request(self, action: str, **payload: Any) -> Dict[str, Any]:
        request_id = str(uuid.uuid4())
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._write({"action": action, "request_id": request_id, **payload})
            return await asyncio.wait_for(future, timeout=self.request_timeout_s)
        except asyncio.TimeoutError as e:
            raise EngineError(f"Bridge request '{action}' timed out") from e
        finally:
            self._pending.pop(request_id, None)

    async def _read_events(self) -> None:
        assert self._process is not None and self._process.stdout is not None
        stdout = self._process.stdout
        while True:
            line = await stdout.readline()
            if not line:
                break
            try:
                frame = json.loads(line)
            except json.JSONDecodeError:
                logger.debug(f"Non-JSON bridge output: {line[:200]!r}")
                continue
            await self.handle_frame(frame)

        if not self._closing:
            # Process died under us: surface it as a reconnectable close
            returncode = await self._process.wait()
            logger.warning(
                f"Bridge for session {self.session_id} exited with code {returncode}",
                extra={"session_id": self.session_id, "returncode": returncode},
            )
            await self._dispatch("connection.update", {
                "connection": "close",
                "lastDisconnect": {
                    "error": {"output": {"statusCode": None}, "message": "bridge process exited"},
                },
            })

    async def _read_stderr(self) -> None:
        assert self._process is not None and self._process.stderr is not None
        async for line in self._process.stderr:
            logger.debug(f"[bridge {self.session_id}] {line.decode('utf-8', 'replace').rstrip()}")

    async def handle_frame(self, frame: Dict[str, Any]) -> None:
        """Route one decoded bridge frame."""
        frame_type = frame.get("type")

        if frame_type == "connection.update":
            data = frame.get("data") or {}
            if data.get("connection") == "open":
                self.user = data.get("user")
            await self._dispatch("connection.update", data)

        elif frame_type == "messages.upsert":
            await self._dispatch("messages.upsert", frame.get("data") or {})

        elif frame_type == "creds.update":
            files = frame.get("files") or {}
            if self.auth.save is None or not files:
                return
            try:
                await self.auth.save(files)
            except AdapterIOFailure as e:
                # Engine keeps running; the next update retries the write
                logger.error(f"Credential save failed: {e}", extra={"session_id": self.session_id})

        elif frame_type == "result":
            future = self._pending.get(frame.get("request_id", ""))
            if future is None or future.done():
                return
            if frame.get("ok"):
                future.set_result(frame.get("data") or {})
            else:
                future.set_exception(EngineError(frame.get("error") or "Bridge request failed"))

        elif frame_type == "log":
            logger.debug(f"[bridge {self.session_id}] {frame.get('message')}")

        else:
            logger.debug(f"Unknown bridge frame type: {frame_type}")


class BridgeEngine(ProtocolEngine):
    """Spawns one BridgeSocket per connection attempt."""

    def __init__(
        self,
        node_binary: str = "node",
        script: Path = DEFAULT_BRIDGE_SCRIPT,
        request_timeout_s: float = 30.0,
    ):
        self.node_binary = node_binary
        self.script = Path(script)
        self.request_timeout_s = request_timeout_s

    async def create_socket(self, session_id: str, auth: AuthState) -> BridgeSocket:
        return BridgeSocket(
            session_id,
            auth,
            node_binary=self.node_binary,
            script=self.script,
            request_timeout_s=self.request_timeout_s,
        )
