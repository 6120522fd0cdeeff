"""
Session registry.

Owns every session of the process: the id -> entry map, the pending
pairing images, the inbound message buffers. Implements the lifecycle
state machine

    ABSENT --start--> PAIRING --open--> CONNECTED
    PAIRING --qr--> PAIRING                      (image rotated)
    any --close(reconnectable)--> PAIRING        (new handle, bounded retries)
    any --close(logged out) | disconnect--> ABSENT

and feeds both consumption models: push (DeliveryMultiplexer) and pull
(await_pairing_image / drain_messages).

Runs on one event loop. No locks; every handler re-checks that its
entry and handle are still current after each suspension point.
"""

import asyncio
import logging
from functools import partial
from typing import Any, Dict, List, Optional

from services.credentials.base import CredentialStore
from services.engine.base import DisconnectReason, EngineError, ProtocolEngine
from services.pairing.renderer import PairingRenderer, render_qr_data_url

from .addressing import is_valid_session_id, to_user_jid
from .connection import ConnectionHandle
from .delivery import DeliveryMultiplexer, PushSubscriber
from .errors import (
    AdapterIOFailure,
    InvalidSessionId,
    LogoutFailure,
    PairingTimeout,
    SendFailure,
    SessionError,
    SessionNotFound,
    StartFailure,
)
from .events import CloseEvent, EventKind, MessagesEvent, OpenEvent, QrEvent
from .reconnect import ReconnectPolicy
from .state import (
    DEFAULT_BUFFER_SIZE,
    SessionEntry,
    SessionState,
    SessionStatus,
    StartResult,
)

logger = logging.getLogger(__name__)

DEFAULT_PAIRING_TIMEOUT_S = 5.0


class SessionRegistry:
    """
    Process-wide owner of session state.

    One instance per process, created at boot and passed to the boundary
    handlers. Nothing outside this class mutates session state.
    """

    def __init__(
        self,
        engine: ProtocolEngine,
        credentials: CredentialStore,
        renderer: PairingRenderer = render_qr_data_url,
        delivery: Optional[DeliveryMultiplexer] = None,
        reconnect_policy: Optional[ReconnectPolicy] = None,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ):
        self.engine = engine
        self.credentials = credentials
        self.renderer = renderer
        self.delivery = delivery or DeliveryMultiplexer()
        self.reconnect_policy = reconnect_policy or ReconnectPolicy()
        self.buffer_size = buffer_size
        self._sessions: Dict[str, SessionEntry] = {}
        self._inflight: Dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def session_ids(self) -> List[str]:
        return list(self._sessions)

    def get_entry(self, session_id: str) -> Optional[SessionEntry]:
        return self._sessions.get(session_id)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def get_status(self, session_id: str) -> SessionStatus:
        """Pure read. Unknown ids report ABSENT."""
        entry = self._sessions.get(session_id)
        if entry is None:
            return SessionStatus(session_id=session_id)
        return entry.status()

    def pending_pairing_image(self, session_id: str) -> Optional[str]:
        entry = self._sessions.get(session_id)
        return entry.pairing_image if entry is not None else None

    async def start_session(
        self,
        session_id: str,
        subscriber: Optional[PushSubscriber] = None,
    ) -> StartResult:
        """
        Create the session if absent; otherwise report current status.

        Single-flight per id: a concurrent second call waits for the first
        attempt instead of building a second connection.

        Raises:
            InvalidSessionId: id unusable
            StartFailure: credentials or engine failed; entry removed
        """
        if not is_valid_session_id(session_id):
            raise InvalidSessionId(session_id)

        if subscriber is not None:
            self.delivery.attach(session_id, subscriber)

        entry = self._sessions.get(session_id)
        if entry is not None:
            inflight = self._inflight.get(session_id)
            if inflight is not None:
                try:
                    await asyncio.shield(inflight)
                except StartFailure:
                    # a failed reconnect keeps the entry; only a failed first start propagates
                    if self._sessions.get(session_id) is entry:
                        return StartResult(status=self.get_status(session_id), created=False)
                    raise
            return StartResult(status=self.get_status(session_id), created=False)

        entry = SessionEntry(session_id=session_id, buffer_size=self.buffer_size)
        self._sessions[session_id] = entry
        logger.info(f"Starting session {session_id}", extra={"session_id": session_id})

        await self._connect(entry, initial=True)
        return StartResult(status=self.get_status(session_id), created=True)

    async def await_pairing_image(
        self,
        session_id: str,
        timeout_s: float = DEFAULT_PAIRING_TIMEOUT_S,
    ) -> Optional[str]:
        """
        Wait until a pairing image is pending or the session opens.

        Returns:
            The image data URL, or None if the session connected without
            needing a QR (stored credentials)

        Raises:
            SessionNotFound: no entry, or it was torn down while waiting
            PairingTimeout: nothing happened within timeout_s
        """
        entry = self._sessions.get(session_id)
        if entry is None:
            raise SessionNotFound(session_id)

        def settled() -> bool:
            return entry.pairing_image is not None or entry.state in (
                SessionState.CONNECTED,
                SessionState.ABSENT,
            )

        async with entry.changed:
            try:
                await asyncio.wait_for(entry.changed.wait_for(settled), timeout_s)
            except asyncio.TimeoutError:
                raise PairingTimeout(session_id, timeout_s) from None

        if entry.state is SessionState.ABSENT:
            raise SessionNotFound(session_id)
        return entry.pairing_image

    def drain_messages(self, session_id: str) -> List[Dict[str, Any]]:
        """
        Return and empty the inbound buffer, oldest first.

        Raises:
            SessionNotFound: no entry
        """
        entry = self._sessions.get(session_id)
        if entry is None:
            raise SessionNotFound(session_id)
        return entry.drain()

    async def send_message(self, session_id: str, destination: str, text: str) -> Dict[str, Any]:
        """
        Send a text message to a phone number.

        Raises:
            SessionNotFound: no entry
            SendFailure: no live connection, bad destination, or engine failure
        """
        entry = self._sessions.get(session_id)
        if entry is None:
            raise SessionNotFound(session_id)
        handle = entry.handle
        if handle is None:
            raise SendFailure(session_id, "Session has no live connection")

        try:
            jid = to_user_jid(destination)
        except ValueError as e:
            raise SendFailure(session_id, str(e)) from e

        try:
            result = await handle.send(jid, {"text": text})
        except EngineError as e:
            logger.error(
                f"Send failed for session {session_id}: {e}",
                exc_info=True,
                extra={"session_id": session_id, "jid": jid},
            )
            raise SendFailure(session_id, "Failed to send message") from e

        logger.info(f"Message sent from session {session_id} to {jid}", extra={"session_id": session_id})
        return {"jid": jid, "id": (result or {}).get("id")}

    async def disconnect(self, session_id: str) -> bool:
        """
        Log out and remove the session.

        Returns:
            True if a session was removed, False if none existed

        Raises:
            LogoutFailure: engine logout failed (entry is removed anyway)
        """
        entry = self._sessions.get(session_id)
        if entry is None:
            return False

        entry.state = SessionState.CLOSING
        handle, entry.handle = entry.handle, None
        logout_error: Optional[EngineError] = None

        if handle is not None:
            try:
                await handle.logout()
            except EngineError as e:
                logout_error = e
                logger.error(
                    f"Logout failed for session {session_id}: {e}",
                    extra={"session_id": session_id},
                )
            finally:
                await self._close_quietly(handle)

        self.delivery.publish(session_id, "connection-close", {
            "shouldReconnect": False,
            "statusCode": int(DisconnectReason.LOGGED_OUT),
        })
        await self._teardown(entry)
        logger.info(f"Session {session_id} disconnected", extra={"session_id": session_id})

        if logout_error is not None:
            raise LogoutFailure(session_id, f"Logout failed: {logout_error}") from logout_error
        # also when there was no live handle to log out
        await self._clear_credentials(session_id)
        return True

    async def shutdown(self) -> None:
        """Close every connection without logging out."""
        for entry in list(self._sessions.values()):
            entry.state = SessionState.CLOSING
            handle, entry.handle = entry.handle, None
            if handle is not None:
                await self._close_quietly(handle)
            await self._teardown(entry)
        for task in list(self._inflight.values()):
            task.cancel()
        logger.info("Session registry shut down")

    # ------------------------------------------------------------------
    # Connection establishment
    # ------------------------------------------------------------------

    async def _connect(self, entry: SessionEntry, initial: bool) -> None:
        session_id = entry.session_id
        task = asyncio.ensure_future(self._establish(entry, initial))
        self._inflight[session_id] = task
        task.add_done_callback(partial(self._forget_inflight, session_id))
        await asyncio.shield(task)

    def _forget_inflight(self, session_id: str, task: asyncio.Task) -> None:
        if self._inflight.get(session_id) is task:
            del self._inflight[session_id]
        if not task.cancelled():
            task.exception()

    def _ensure_current(self, entry: SessionEntry) -> None:
        if self._sessions.get(entry.session_id) is not entry or entry.state is SessionState.CLOSING:
            raise StartFailure(entry.session_id, "Session was disconnected while starting")

    async def _establish(self, entry: SessionEntry, initial: bool) -> None:
        session_id = entry.session_id
        handle: Optional[ConnectionHandle] = None
        try:
            auth = await self.credentials.load_state(session_id)
            self._ensure_current(entry)

            socket = await self.engine.create_socket(session_id, auth)
            handle = ConnectionHandle(session_id, socket)
            self._ensure_current(entry)

            handle.subscribe(EventKind.QR, partial(self._on_qr, entry, handle))
            handle.subscribe(EventKind.OPEN, partial(self._on_open, entry, handle))
            handle.subscribe(EventKind.CLOSE, partial(self._on_close, entry, handle))
            handle.subscribe(EventKind.MESSAGES, partial(self._on_messages, entry, handle))
            entry.handle = handle

            await handle.start()
        except Exception as e:
            if handle is not None:
                if entry.handle is handle:
                    entry.handle = None
                await self._close_quietly(handle)
            if initial:
                await self._teardown(entry)
            logger.error(
                f"Failed to start session {session_id}: {e}",
                exc_info=not isinstance(e, (SessionError, EngineError)),
                extra={"session_id": session_id, "initial": initial},
            )
            if isinstance(e, StartFailure):
                raise
            raise StartFailure(session_id, f"Failed to start session: {e}") from e

        logger.info(
            f"Connection handle created for session {session_id}",
            extra={"session_id": session_id, "attempt": entry.reconnect_attempts},
        )

    async def _reconnect_or_give_up(self, entry: SessionEntry) -> None:
        session_id = entry.session_id
        entry.reconnect_attempts += 1
        attempt = entry.reconnect_attempts

        if not self.reconnect_policy.allows(attempt):
            logger.error(
                f"Giving up on session {session_id} after {attempt - 1} reconnect attempts",
                extra={"session_id": session_id},
            )
            self.delivery.publish(session_id, "connection-close", {
                "shouldReconnect": False,
                "statusCode": None,
                "reason": "reconnect attempts exhausted",
            })
            await self._teardown(entry)
            return

        delay = self.reconnect_policy.delay_for(attempt)
        entry.reconnect_task = asyncio.create_task(self._reconnect(entry, attempt, delay))

    async def _reconnect(self, entry: SessionEntry, attempt: int, delay: float) -> None:
        session_id = entry.session_id
        try:
            if delay > 0:
                await asyncio.sleep(delay)
            if self._sessions.get(session_id) is not entry or entry.state is SessionState.CLOSING:
                return

            logger.info(
                f"Reconnecting session {session_id} (attempt {attempt})",
                extra={"session_id": session_id, "attempt": attempt},
            )
            try:
                await self._connect(entry, initial=False)
            except StartFailure as e:
                logger.warning(f"Reconnect attempt {attempt} for session {session_id} failed: {e}")
                if self._sessions.get(session_id) is entry and entry.state is not SessionState.CLOSING:
                    await self._reconnect_or_give_up(entry)
        finally:
            # a follow-up attempt may already have replaced it
            if entry.reconnect_task is asyncio.current_task():
                entry.reconnect_task = None

    # ------------------------------------------------------------------
    # Connection events
    # ------------------------------------------------------------------

    def _is_current(self, entry: SessionEntry, handle: ConnectionHandle) -> bool:
        return self._sessions.get(entry.session_id) is entry and entry.handle is handle

    async def _on_qr(self, entry: SessionEntry, handle: ConnectionHandle, event: QrEvent) -> None:
        if not self._is_current(entry, handle):
            return
        session_id = entry.session_id
        logger.info(f"QR code received for session {session_id}, rendering image")

        loop = asyncio.get_running_loop()
        try:
            image = await loop.run_in_executor(None, self.renderer, event.payload)
        except ValueError as e:
            logger.error(f"Could not render QR for session {session_id}: {e}")
            return

        # open/close/disconnect may have landed while rendering
        if not self._is_current(entry, handle) or entry.state is not SessionState.PAIRING:
            return
        entry.pairing_image = image
        await self._notify(entry)
        self.delivery.publish(session_id, "qr", {"qrCode": image})

    async def _on_open(self, entry: SessionEntry, handle: ConnectionHandle, event: OpenEvent) -> None:
        if not self._is_current(entry, handle):
            return
        session_id = entry.session_id
        entry.state = SessionState.CONNECTED
        entry.pairing_image = None
        entry.identity = event.identity
        entry.reconnect_attempts = 0
        logger.info(f"Connection opened for session {session_id}", extra={"session_id": session_id})

        await self._notify(entry)
        self.delivery.publish(session_id, "connection-open", {
            "user": event.identity,
            "connected": True,
        })

    async def _on_close(self, entry: SessionEntry, handle: ConnectionHandle, event: CloseEvent) -> None:
        if not self._is_current(entry, handle):
            return
        session_id = entry.session_id
        entry.handle = None
        entry.identity = None
        entry.pairing_image = None
        logger.info(
            f"Connection closed for session {session_id}. Status code: {event.status_code}",
            extra={
                "session_id": session_id,
                "status_code": event.status_code,
                "should_reconnect": event.should_reconnect,
            },
        )

        self.delivery.publish(session_id, "connection-close", {
            "shouldReconnect": event.should_reconnect,
            "statusCode": event.status_code,
        })
        await self._close_quietly(handle)

        if not event.should_reconnect:
            await self._teardown(entry)
            await self._clear_credentials(session_id)
            return

        entry.state = SessionState.PAIRING
        await self._reconnect_or_give_up(entry)

    async def _on_messages(self, entry: SessionEntry, handle: ConnectionHandle, event: MessagesEvent) -> None:
        if not self._is_current(entry, handle):
            return
        inbound = event.inbound()
        if inbound:
            entry.buffer(inbound)
        logger.info(
            f"{len(inbound)} new message(s) for session {entry.session_id}",
            extra={"session_id": entry.session_id, "upsert_type": event.upsert_type},
        )
        self.delivery.publish(entry.session_id, "messages", {
            "messages": event.messages,
            "type": event.upsert_type,
        })

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _notify(self, entry: SessionEntry) -> None:
        async with entry.changed:
            entry.changed.notify_all()

    async def _teardown(self, entry: SessionEntry) -> None:
        session_id = entry.session_id
        if self._sessions.get(session_id) is entry:
            del self._sessions[session_id]
            self.delivery.detach(session_id)
        entry.state = SessionState.ABSENT
        entry.handle = None
        entry.pairing_image = None
        entry.identity = None
        entry.messages.clear()

        task, entry.reconnect_task = entry.reconnect_task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
        await self._notify(entry)

    async def _close_quietly(self, handle: ConnectionHandle) -> None:
        try:
            await handle.close()
        except Exception as e:
            logger.warning(f"Error closing connection for session {handle.session_id}: {e}")

    async def _clear_credentials(self, session_id: str) -> None:
        try:
            await self.credentials.clear(session_id)
        except AdapterIOFailure as e:
            logger.error(f"Could not clear credentials for session {session_id}: {e}")
