"""
Protocol engine exports.

Clean interface for the registry to import engine components.
"""

from .base import (
    DisconnectReason,
    EngineError,
    EngineListener,
    EngineSocket,
    ProtocolEngine,
)
from .bridge import BridgeEngine, BridgeSocket
from .stub import StubEngine, StubSocket

__all__ = [
    "DisconnectReason",
    "EngineError",
    "EngineListener",
    "EngineSocket",
    "ProtocolEngine",
    "BridgeEngine",
    "BridgeSocket",
    "StubEngine",
    "StubSocket",
]
