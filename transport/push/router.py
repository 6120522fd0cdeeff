"""
Push Channel

WebSocket endpoint mirroring the event vocabulary of the HTTP API.

Client -> server:  {"event": "start-session", "data": {"sessionId": "s1"}}
Server -> client:  {"event": "session-started" | "qr" | "connection-open"
                             | "connection-close" | "messages" | "error",
                    "data": {...}}

A start-session request binds this client to the session's events
(last requester wins). Leaving unbinds it from every session.

Plain WebSocket with JSON frames, not socket.io: socket.io clients
must switch to this framing to connect.
"""

import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from sessions import InvalidSessionId, SessionRegistry, StartFailure

from .subscriber import WebSocketSubscriber

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Push Channel"])


async def _handle_start_session(
    registry: SessionRegistry,
    subscriber: WebSocketSubscriber,
    data: Dict[str, Any],
) -> None:
    session_id = data.get("sessionId")
    if not isinstance(session_id, str) or not session_id:
        subscriber.deliver("session-started", {"success": False, "error": "sessionId is required"})
        return

    logger.info(f"Starting session {session_id} for push client {subscriber.subscriber_id}")
    try:
        result = await registry.start_session(session_id, subscriber=subscriber)
    except (InvalidSessionId, StartFailure) as e:
        logger.error(f"Error starting session {session_id}: {e}")
        subscriber.deliver("session-started", {"success": False, "error": str(e)})
        return

    subscriber.deliver("session-started", {
        "success": True,
        "sessionId": session_id,
        "connected": result.status.connected,
    })


@router.websocket("/ws")
async def push_channel(websocket: WebSocket):
    """One event stream per connected client."""
    registry: SessionRegistry = websocket.app.state.registry
    await websocket.accept()

    subscriber = WebSocketSubscriber(websocket)
    subscriber.start()
    logger.info(f"Push client connected: {subscriber.subscriber_id}")

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                subscriber.deliver("error", {"error": "Invalid JSON frame"})
                continue
            if not isinstance(frame, dict):
                subscriber.deliver("error", {"error": "Frame must be an object"})
                continue

            event = frame.get("event")
            data = frame.get("data") or {}
            if event == "start-session" and isinstance(data, dict):
                await _handle_start_session(registry, subscriber, data)
            else:
                subscriber.deliver("error", {"error": f"Unknown event: {event}"})

    except WebSocketDisconnect:
        logger.info(f"Push client disconnected: {subscriber.subscriber_id}")
    finally:
        released = registry.delivery.detach_subscriber(subscriber.subscriber_id)
        if released:
            logger.debug(f"Push client {subscriber.subscriber_id} released sessions {released}")
        await subscriber.close()
