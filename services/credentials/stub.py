"""
In-memory credential store for testing and offline development.

Nothing survives a restart.
"""

import asyncio
import copy
from typing import Dict

from .base import CredentialFiles, CredentialStore


class InMemoryCredentialStore(CredentialStore):
    """Dict-backed store. Yields once per call like real I/O would."""

    def __init__(self) -> None:
        self._sessions: Dict[str, CredentialFiles] = {}
        self.save_count = 0

    async def load(self, session_id: str) -> CredentialFiles:
        await asyncio.sleep(0)
        return copy.deepcopy(self._sessions.get(session_id, {}))

    async def save(self, session_id: str, updates: CredentialFiles) -> None:
        await asyncio.sleep(0)
        files = self._sessions.setdefault(session_id, {})
        for name, value in updates.items():
            if value is None:
                files.pop(name, None)
            else:
                files[name] = copy.deepcopy(value)
        self.save_count += 1

    async def clear(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def snapshot(self, session_id: str) -> CredentialFiles:
        """Stored files for assertions."""
        return copy.deepcopy(self._sessions.get(session_id, {}))
