"""
Filesystem credential store.

One directory per session under the configured root, one JSON file per
credential entry. File names are percent-encoded so engine keys that
contain '/' or ':' stay inside the session directory.

Blocking file I/O runs in the default executor.
"""

import asyncio
import json
import logging
import os
import shutil
from functools import partial
from pathlib import Path
from urllib.parse import quote, unquote

from sessions.addressing import is_valid_session_id
from sessions.errors import AdapterIOFailure, InvalidSessionId

from .base import CredentialFiles, CredentialStore

logger = logging.getLogger(__name__)

_SUFFIX = ".json"


class FileSystemCredentialStore(CredentialStore):
    """Multi-file credential layout rooted at `root`."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def session_dir(self, session_id: str) -> Path:
        """Directory owned by one session."""
        if not is_valid_session_id(session_id):
            raise InvalidSessionId(session_id)
        return self.root / session_id

    async def load(self, session_id: str) -> CredentialFiles:
        directory = self.session_dir(session_id)
        return await self._run(session_id, "load", partial(self._read_all, directory))

    async def save(self, session_id: str, updates: CredentialFiles) -> None:
        directory = self.session_dir(session_id)
        await self._run(session_id, "save", partial(self._write_many, directory, updates))

    async def clear(self, session_id: str) -> None:
        directory = self.session_dir(session_id)
        await self._run(session_id, "clear", partial(shutil.rmtree, directory, True))
        logger.info(f"Credentials cleared for session {session_id}")

    async def _run(self, session_id: str, operation: str, func):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, func)
        except (OSError, ValueError) as e:
            logger.error(
                f"Credential {operation} failed for session {session_id}: {e}",
                extra={"session_id": session_id, "operation": operation},
            )
            raise AdapterIOFailure(session_id, f"Credential {operation} failed: {e}") from e

    @staticmethod
    def _file_name(key: str) -> str:
        return quote(key, safe="") + _SUFFIX

    @staticmethod
    def _read_all(directory: Path) -> CredentialFiles:
        directory.mkdir(parents=True, exist_ok=True)
        files: CredentialFiles = {}
        for path in sorted(directory.glob(f"*{_SUFFIX}")):
            key = unquote(path.name[: -len(_SUFFIX)])
            with path.open("r", encoding="utf-8") as handle:
                files[key] = json.load(handle)
        return files

    @classmethod
    def _write_many(cls, directory: Path, updates: CredentialFiles) -> None:
        directory.mkdir(parents=True, exist_ok=True)
        for key, value in updates.items():
            path = directory / cls._file_name(key)
            if value is None:
                path.unlink(missing_ok=True)
                continue
            # write-then-rename so a crash never leaves half a file
            tmp_path = path.with_name(path.name + ".tmp")
            with tmp_path.open("w", encoding="utf-8") as handle:
                json.dump(value, handle)
            os.replace(tmp_path, path)
