"""
Delivery multiplexer.

Fans registry events out to push subscribers. Push is fire-and-forget:
publish() never blocks and never fails the caller. Polling state lives
in the registry and is updated whether or not anyone is subscribed.

One subscriber slot per session; the latest push-initiated start wins.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class PushSubscriber(ABC):
    """A push-channel client able to receive session events."""

    subscriber_id: str

    @abstractmethod
    def deliver(self, event: str, data: Dict[str, Any]) -> None:
        """
        Queue an event for the client. Must not block.

        Delivery failures stay inside the subscriber.
        """
        raise NotImplementedError


class DeliveryMultiplexer:
    """Session id -> push subscriber routing."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, PushSubscriber] = {}

    def attach(self, session_id: str, subscriber: PushSubscriber) -> None:
        previous = self._subscribers.get(session_id)
        if previous is not None and previous.subscriber_id != subscriber.subscriber_id:
            logger.info(
                f"Session {session_id} push subscriber replaced: "
                f"{previous.subscriber_id} -> {subscriber.subscriber_id}"
            )
        self._subscribers[session_id] = subscriber

    def detach(self, session_id: str) -> None:
        self._subscribers.pop(session_id, None)

    def detach_subscriber(self, subscriber_id: str) -> List[str]:
        """Drop a departed client from every session. Returns affected ids."""
        affected = [
            session_id for session_id, subscriber in self._subscribers.items()
            if subscriber.subscriber_id == subscriber_id
        ]
        for session_id in affected:
            del self._subscribers[session_id]
        return affected

    def subscriber_for(self, session_id: str) -> Optional[PushSubscriber]:
        return self._subscribers.get(session_id)

    def publish(self, session_id: str, event: str, data: Dict[str, Any]) -> bool:
        """Send to the session's subscriber, if any. True if one was found."""
        subscriber = self._subscribers.get(session_id)
        if subscriber is None:
            return False
        try:
            subscriber.deliver(event, data)
        except Exception as e:
            logger.warning(
                f"Push delivery of '{event}' for session {session_id} failed: {e}",
                extra={"session_id": session_id, "subscriber_id": subscriber.subscriber_id},
            )
        return True
