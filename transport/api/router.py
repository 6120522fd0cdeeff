"""
Session HTTP API

FastAPI router translating /api requests into SessionRegistry operations.
No lifecycle logic here: every decision is the registry's.
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from sessions import (
    InvalidSessionId,
    LogoutFailure,
    PairingTimeout,
    SendFailure,
    SessionNotFound,
    SessionRegistry,
    StartFailure,
)
from sessions.registry import DEFAULT_PAIRING_TIMEOUT_S

from .schemas import (
    DisconnectResponse,
    ErrorResponse,
    HealthResponse,
    MessagesResponse,
    SendMessageRequest,
    SendMessageResponse,
    StartSessionResponse,
    StatusResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Sessions"])


def get_registry(request: Request) -> SessionRegistry:
    """The process registry, attached to the app at startup."""
    return request.app.state.registry


def _error(status_code: int, message: str, **fields) -> JSONResponse:
    body = ErrorResponse(error=message, **fields)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _ok(model) -> dict:
    return model.model_dump(exclude_none=True)


# ============================================================================
# HEALTH
# ============================================================================

@router.get("/health")
async def health(request: Request) -> dict:
    """Liveness probe."""
    environment = getattr(request.app.state, "environment", "development")
    return _ok(HealthResponse(environment=environment))


# ============================================================================
# SESSION LIFECYCLE
# ============================================================================

@router.get("/status/{session_id}")
async def session_status(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> dict:
    """Read-only connectivity check."""
    current = registry.get_status(session_id)
    return _ok(StatusResponse(
        connected=current.connected,
        state=current.state.value,
        user=current.user,
    ))


@router.post("/start-session/{session_id}")
async def start_session(
    session_id: str,
    request: Request,
    registry: SessionRegistry = Depends(get_registry),
):
    """
    Start a session and hand back its QR code.

    Returns:
        {"connected": true, ...}         already connected
        {"connected": false, "qrCode"}   pairing in progress
        408 {"error", "connected": false} no QR within the pairing timeout
    """
    try:
        result = await registry.start_session(session_id)
    except InvalidSessionId as e:
        return _error(status.HTTP_400_BAD_REQUEST, str(e), connected=False)
    except StartFailure as e:
        logger.error(f"Start failed for session {session_id}: {e}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e), connected=False)

    if not result.created:
        current = result.status
        if current.connected:
            return _ok(StartSessionResponse(
                connected=True,
                user=current.user,
                message="Session already active",
            ))
        pending = registry.pending_pairing_image(session_id)
        if pending is not None:
            return _ok(StartSessionResponse(
                connected=False,
                qrCode=pending,
                message="Session already active",
            ))

    timeout_s = getattr(request.app.state, "pairing_timeout_s", DEFAULT_PAIRING_TIMEOUT_S)
    try:
        image = await registry.await_pairing_image(session_id, timeout_s)
    except PairingTimeout as e:
        logger.warning(f"QR wait timed out for session {session_id}")
        return _error(status.HTTP_408_REQUEST_TIMEOUT, str(e), connected=False)
    except SessionNotFound:
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Session closed before a QR code was issued",
            connected=False,
        )

    if image is None:
        # Stored credentials: the engine opened without pairing
        return _ok(StartSessionResponse(connected=True, user=registry.get_status(session_id).user))
    return _ok(StartSessionResponse(connected=False, qrCode=image))


@router.get("/messages/{session_id}")
async def drain_messages(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    """Return buffered inbound messages and clear the buffer."""
    try:
        messages = registry.drain_messages(session_id)
    except SessionNotFound as e:
        return _error(status.HTTP_404_NOT_FOUND, str(e))
    return _ok(MessagesResponse(messages=messages))


@router.post("/disconnect/{session_id}")
async def disconnect(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    """Log out and forget the session. Unknown sessions count as success."""
    try:
        removed = await registry.disconnect(session_id)
    except LogoutFailure as e:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))

    if not removed:
        return _ok(DisconnectResponse(success=True, message="Session already disconnected"))
    return _ok(DisconnectResponse(success=True))


# ============================================================================
# MESSAGING
# ============================================================================

@router.post("/send-message/{session_id}")
async def send_message(
    session_id: str,
    body: SendMessageRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    """Send a text message; the number is normalized to a protocol address."""
    try:
        result = await registry.send_message(session_id, body.number, body.message)
    except SessionNotFound:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=_ok(SendMessageResponse(success=False, message="Session not found")),
        )
    except SendFailure as e:
        logger.error(f"Send failed for session {session_id}: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_ok(SendMessageResponse(success=False, message="Failed to send message")),
        )
    return _ok(SendMessageResponse(success=True, id=result.get("id")))
