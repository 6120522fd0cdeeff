"""HTTP API - Module Exports"""

from .router import get_registry, router
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

__all__ = [
    # Router
    "router",
    "get_registry",
    # Schemas
    "SendMessageRequest",
    "HealthResponse",
    "StatusResponse",
    "StartSessionResponse",
    "MessagesResponse",
    "DisconnectResponse",
    "SendMessageResponse",
    "ErrorResponse",
]
