"""
Session lifecycle layer.

Exports the registry, its state/event vocabulary and the error taxonomy.
"""

from .addressing import USER_DOMAIN, is_valid_session_id, to_user_jid
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
from .events import (
    CloseEvent,
    ConnectionEvent,
    EventKind,
    MessagesEvent,
    OpenEvent,
    QrEvent,
)
from .reconnect import ReconnectPolicy
from .registry import DEFAULT_PAIRING_TIMEOUT_S, SessionRegistry
from .state import SessionEntry, SessionState, SessionStatus, StartResult

__all__ = [
    # Registry
    "SessionRegistry",
    "DEFAULT_PAIRING_TIMEOUT_S",
    "ReconnectPolicy",
    # State
    "SessionEntry",
    "SessionState",
    "SessionStatus",
    "StartResult",
    # Connection
    "ConnectionHandle",
    "EventKind",
    "ConnectionEvent",
    "QrEvent",
    "OpenEvent",
    "CloseEvent",
    "MessagesEvent",
    # Delivery
    "DeliveryMultiplexer",
    "PushSubscriber",
    # Addressing
    "USER_DOMAIN",
    "is_valid_session_id",
    "to_user_jid",
    # Errors
    "SessionError",
    "SessionNotFound",
    "InvalidSessionId",
    "PairingTimeout",
    "StartFailure",
    "SendFailure",
    "LogoutFailure",
    "AdapterIOFailure",
]
