"""
Session lifecycle state.

SessionEntry is the registry's private per-session record; SessionStatus
is the read-only view handed to callers.
"""

import asyncio
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

from .connection import ConnectionHandle

DEFAULT_BUFFER_SIZE = 50


class SessionState(str, Enum):
    ABSENT = "absent"
    PAIRING = "pairing"
    CONNECTED = "connected"
    CLOSING = "closing"


@dataclass(frozen=True)
class SessionStatus:
    """Point-in-time view of one session."""

    session_id: str
    state: SessionState = SessionState.ABSENT
    user: Optional[Dict[str, Any]] = None
    buffered_messages: int = 0

    @property
    def connected(self) -> bool:
        return self.state is SessionState.CONNECTED


@dataclass(frozen=True)
class StartResult:
    """Outcome of start_session."""

    status: SessionStatus
    created: bool


@dataclass(eq=False)
class SessionEntry:
    """
    Mutable per-session record.

    Invariants:
    - handle is set only while PAIRING or CONNECTED
    - pairing_image is set only while PAIRING
    - messages never exceeds buffer_size; oldest evicted first
    """

    session_id: str
    buffer_size: int = DEFAULT_BUFFER_SIZE
    state: SessionState = SessionState.PAIRING
    handle: Optional[ConnectionHandle] = None
    pairing_image: Optional[str] = None
    identity: Optional[Dict[str, Any]] = None
    reconnect_attempts: int = 0
    reconnect_task: Optional[asyncio.Task] = None
    messages: Deque[Dict[str, Any]] = field(init=False)
    changed: asyncio.Condition = field(default_factory=asyncio.Condition)

    def __post_init__(self) -> None:
        self.messages = deque(maxlen=self.buffer_size)

    def buffer(self, messages: List[Dict[str, Any]]) -> None:
        self.messages.extend(messages)

    def drain(self) -> List[Dict[str, Any]]:
        drained = list(self.messages)
        self.messages.clear()
        return drained

    def status(self) -> SessionStatus:
        return SessionStatus(
            session_id=self.session_id,
            state=self.state,
            user=(self.identity or {"id": "unknown"}) if self.state is SessionState.CONNECTED else None,
            buffered_messages=len(self.messages),
        )
