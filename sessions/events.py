"""
Connection events.

The finite vocabulary a ConnectionHandle publishes to the registry.
Each kind has one frozen payload type.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union


class EventKind(str, Enum):
    """Subscribable event kinds of a connection."""

    QR = "qr"
    OPEN = "open"
    CLOSE = "close"
    MESSAGES = "messages"


@dataclass(frozen=True)
class QrEvent:
    """Engine issued (or rotated) a pairing payload."""

    payload: str
    kind: ClassVar[EventKind] = EventKind.QR


@dataclass(frozen=True)
class OpenEvent:
    """Engine reports the connection as open and authenticated."""

    identity: Optional[Dict[str, Any]] = None
    kind: ClassVar[EventKind] = EventKind.OPEN


@dataclass(frozen=True)
class CloseEvent:
    """Engine closed the connection."""

    status_code: Optional[int]
    should_reconnect: bool
    reason: str = ""
    kind: ClassVar[EventKind] = EventKind.CLOSE


@dataclass(frozen=True)
class MessagesEvent:
    """Batch of messages upserted by the engine."""

    messages: List[Dict[str, Any]] = field(default_factory=list)
    upsert_type: str = "notify"
    kind: ClassVar[EventKind] = EventKind.MESSAGES

    def inbound(self) -> List[Dict[str, Any]]:
        """Messages not sent by this account."""
        return [
            message for message in self.messages
            if isinstance(message, dict)
            and message.get("key")
            and not message["key"].get("fromMe")
        ]


ConnectionEvent = Union[QrEvent, OpenEvent, CloseEvent, MessagesEvent]
