"""
Test suite for credential stores.

Verifies:
- Filesystem layout: one directory per session, one JSON file per entry
- Partial updates and deletions
- Clear removes only the one session
- I/O failures surface as AdapterIOFailure
"""

import json

import pytest

from services.credentials import FileSystemCredentialStore, InMemoryCredentialStore
from sessions import AdapterIOFailure, InvalidSessionId


@pytest.fixture
def store(tmp_path):
    return FileSystemCredentialStore(tmp_path / "auth_info")


class TestFileSystemCredentialStore:
    """On-disk multi-file layout."""

    @pytest.mark.asyncio
    async def test_new_session_loads_empty(self, store):
        state = await store.load_state("tenant-1")

        assert state.files == {}
        assert state.is_new is True
        assert store.session_dir("tenant-1").is_dir()

    @pytest.mark.asyncio
    async def test_save_writes_one_file_per_key(self, store):
        await store.save("tenant-1", {"creds": {"registered": True}, "app-state-sync-key-AAA": {"k": 1}})

        directory = store.session_dir("tenant-1")
        assert sorted(path.name for path in directory.iterdir()) == [
            "app-state-sync-key-AAA.json",
            "creds.json",
        ]
        assert json.loads((directory / "creds.json").read_text()) == {"registered": True}

    @pytest.mark.asyncio
    async def test_saved_state_is_loaded_back(self, store):
        state = await store.load_state("tenant-1")
        await state.save({"creds": {"registered": True}, "session-1:2": {"n": 2}})

        reloaded = await store.load_state("tenant-1")

        assert reloaded.is_new is False
        assert reloaded.files == {"creds": {"registered": True}, "session-1:2": {"n": 2}}

    @pytest.mark.asyncio
    async def test_keys_stay_inside_session_dir(self, store):
        await store.save("tenant-1", {"../escape/key": {"n": 1}})

        files = list(store.session_dir("tenant-1").iterdir())
        assert len(files) == 1
        assert (await store.load("tenant-1")) == {"../escape/key": {"n": 1}}

    @pytest.mark.asyncio
    async def test_none_deletes_entry(self, store):
        await store.save("tenant-1", {"creds": {"a": 1}, "pre-key-1": {"b": 2}})
        await store.save("tenant-1", {"pre-key-1": None, "pre-key-9": None})

        assert await store.load("tenant-1") == {"creds": {"a": 1}}

    @pytest.mark.asyncio
    async def test_clear_removes_only_that_session(self, store):
        await store.save("tenant-1", {"creds": {"a": 1}})
        await store.save("tenant-2", {"creds": {"b": 2}})

        await store.clear("tenant-1")
        await store.clear("tenant-1")

        assert not store.session_dir("tenant-1").exists()
        assert await store.load("tenant-2") == {"creds": {"b": 2}}

    @pytest.mark.asyncio
    async def test_invalid_session_id(self, store):
        with pytest.raises(InvalidSessionId):
            await store.load("../outside")

    @pytest.mark.asyncio
    async def test_corrupt_file_raises_adapter_failure(self, store):
        directory = store.session_dir("tenant-1")
        directory.mkdir(parents=True)
        (directory / "creds.json").write_text("{not json")

        with pytest.raises(AdapterIOFailure):
            await store.load("tenant-1")

    @pytest.mark.asyncio
    async def test_unwritable_root_raises_adapter_failure(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        store = FileSystemCredentialStore(blocker)

        with pytest.raises(AdapterIOFailure):
            await store.save("tenant-1", {"creds": {}})


class TestInMemoryCredentialStore:
    """Dict-backed store used by tests and offline runs."""

    @pytest.mark.asyncio
    async def test_loaded_files_are_copies(self):
        store = InMemoryCredentialStore()
        await store.save("tenant-1", {"creds": {"registered": False}})

        files = await store.load("tenant-1")
        files["creds"]["registered"] = True

        assert store.snapshot("tenant-1") == {"creds": {"registered": False}}

    @pytest.mark.asyncio
    async def test_save_count_and_clear(self):
        store = InMemoryCredentialStore()
        state = await store.load_state("tenant-1")

        await state.save({"creds": {}})
        await state.save({"creds": None})
        await store.clear("tenant-1")

        assert store.save_count == 2
        assert store.snapshot("tenant-1") == {}
