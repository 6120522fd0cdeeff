"""
HTTP API - Pydantic Schemas

PURE DATA MODELS - NO LOGIC
Request bodies and response shapes of the /api surface.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# REQUESTS
# ============================================================================

class SendMessageRequest(BaseModel):
    """Body of POST /api/send-message/{session_id}."""

    number: str = Field(..., min_length=1, description="Destination phone number, any formatting")
    message: str = Field(..., description="Text to send")


# ============================================================================
# RESPONSES
# ============================================================================

class HealthResponse(BaseModel):
    status: str = "ok"
    environment: str


class StatusResponse(BaseModel):
    """Connectivity of one session. `user` only when connected."""

    connected: bool
    state: str
    user: Optional[Dict[str, Any]] = None


class StartSessionResponse(BaseModel):
    """Either a QR to scan or confirmation that the session is live."""

    connected: bool
    qrCode: Optional[str] = None
    user: Optional[Dict[str, Any]] = None
    message: Optional[str] = None


class MessagesResponse(BaseModel):
    messages: List[Dict[str, Any]] = Field(default_factory=list)


class DisconnectResponse(BaseModel):
    success: bool
    message: Optional[str] = None


class SendMessageResponse(BaseModel):
    success: bool
    id: Optional[str] = None
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error body. `connected` is set on start-session failures."""

    model_config = ConfigDict(extra="allow")

    error: str
    connected: Optional[bool] = None
