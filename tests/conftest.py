"""Pytest configuration and fixtures."""

import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Tuple

import pytest

# Add project root to sys.path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Offline backends for anything that builds the app from the environment
os.environ.setdefault("ENGINE_BACKEND", "stub")
os.environ.setdefault("CREDENTIAL_BACKEND", "memory")

from services.credentials import InMemoryCredentialStore  # noqa: E402
from services.engine import StubEngine  # noqa: E402
from sessions import PushSubscriber, ReconnectPolicy, SessionRegistry  # noqa: E402


def fake_renderer(payload: str) -> str:
    """Deterministic stand-in for the QR renderer."""
    return f"data:image/png;base64,{payload}"


class RecordingSubscriber(PushSubscriber):
    """Push subscriber that keeps every delivered event."""

    def __init__(self, subscriber_id: str = "client-1"):
        self.subscriber_id = subscriber_id
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def deliver(self, event: str, data: Dict[str, Any]) -> None:
        self.events.append((event, data))

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def last(self, name: str) -> Dict[str, Any]:
        for event, data in reversed(self.events):
            if event == name:
                return data
        raise AssertionError(f"No '{name}' event delivered; got {self.names()}")


@pytest.fixture
def engine():
    return StubEngine()


@pytest.fixture
def credentials():
    return InMemoryCredentialStore()


@pytest.fixture
def reconnect_policy():
    return ReconnectPolicy(max_attempts=3, base_delay_s=0.0)


@pytest.fixture
def registry(engine, credentials, reconnect_policy):
    return SessionRegistry(
        engine=engine,
        credentials=credentials,
        renderer=fake_renderer,
        reconnect_policy=reconnect_policy,
    )


@pytest.fixture
def make_subscriber():
    return RecordingSubscriber


@pytest.fixture
def subscriber():
    return RecordingSubscriber()


@pytest.fixture
def make_message():
    """Factory for engine-shaped message records."""

    def _make(n: int, from_me: bool = False, text: str = "") -> Dict[str, Any]:
        return {
            "key": {
                "remoteJid": "15551234567@s.whatsapp.net",
                "fromMe": from_me,
                "id": f"MSG{n:04d}",
            },
            "message": {"conversation": text or f"message {n}"},
            "messageTimestamp": 1707500000 + n,
        }

    return _make
