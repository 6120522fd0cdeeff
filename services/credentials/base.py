"""
Credential store abstract interface.

Role: load and persist the per-session authentication material the
protocol engine needs. The material is opaque here: a mapping of
file name -> JSON-compatible value, as produced by the engine.

Rules:
- One store instance per process, one directory (or slot) per session
- Load on every connection attempt
- Save on every credential-update event from the engine
- All I/O failures surface as AdapterIOFailure
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

CredentialFiles = Dict[str, Any]


@dataclass
class AuthState:
    """
    Authentication material handed to the engine for one session.

    `save` persists a partial update. A value of None deletes that file.
    """

    session_id: str
    files: CredentialFiles = field(default_factory=dict)
    save: Optional[Callable[[CredentialFiles], Awaitable[None]]] = None

    @property
    def is_new(self) -> bool:
        """No stored credentials; the engine will have to pair."""
        return "creds" not in self.files


class CredentialStore(ABC):
    """
    Abstract credential boundary.
    The registry depends ONLY on this interface.
    """

    async def load_state(self, session_id: str) -> AuthState:
        """Load material and bind the save-callback for the engine."""
        files = await self.load(session_id)

        async def save(updates: CredentialFiles) -> None:
            await self.save(session_id, updates)

        return AuthState(session_id=session_id, files=files, save=save)

    @abstractmethod
    async def load(self, session_id: str) -> CredentialFiles:
        """
        Load every stored file for the session.

        Returns:
            Mapping of file name -> value (empty for a new session)

        Raises:
            AdapterIOFailure: storage unreadable
        """
        raise NotImplementedError

    @abstractmethod
    async def save(self, session_id: str, updates: CredentialFiles) -> None:
        """
        Persist a partial update.

        Raises:
            AdapterIOFailure: storage unwritable
        """
        raise NotImplementedError

    @abstractmethod
    async def clear(self, session_id: str) -> None:
        """Remove all material for the session (after logout)."""
        raise NotImplementedError
