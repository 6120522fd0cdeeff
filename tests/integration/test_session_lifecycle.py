"""
Session lifecycle integration tests.

Registry + stub engine + on-disk credentials, across a simulated restart:
pair once, restart the process, come back connected without a QR.
"""

import asyncio

import pytest

from services.credentials import FileSystemCredentialStore
from services.engine import DisconnectReason, StubEngine
from services.pairing import DATA_URL_PREFIX, render_qr_data_url
from sessions import ReconnectPolicy, SessionRegistry, SessionState


def build_registry(auth_root) -> SessionRegistry:
    return SessionRegistry(
        engine=StubEngine(auto_qr=True),
        credentials=FileSystemCredentialStore(auth_root),
        renderer=render_qr_data_url,
        reconnect_policy=ReconnectPolicy(max_attempts=2, base_delay_s=0.0),
    )


@pytest.mark.asyncio
async def test_pair_restart_and_logout(tmp_path, subscriber):
    auth_root = tmp_path / "auth_info"

    # First boot: new device pairs through a real QR image
    registry = build_registry(auth_root)
    await registry.start_session("tenant-1", subscriber=subscriber)
    image = await registry.await_pairing_image("tenant-1", timeout_s=5.0)
    assert image.startswith(DATA_URL_PREFIX)
    assert subscriber.last("qr") == {"qrCode": image}

    await registry.engine.latest("tenant-1").emit_open()
    assert registry.get_status("tenant-1").connected is True
    assert (auth_root / "tenant-1" / "creds.json").exists()

    await registry.shutdown()
    assert (auth_root / "tenant-1" / "creds.json").exists()

    # Second boot: stored credentials reopen without pairing
    registry = build_registry(auth_root)
    await registry.start_session("tenant-1")
    assert await registry.await_pairing_image("tenant-1", timeout_s=5.0) is None
    assert registry.get_status("tenant-1").state == SessionState.CONNECTED

    result = await registry.send_message("tenant-1", "+1 555 000 1111", "back online")
    assert result["jid"] == "15550001111@s.whatsapp.net"

    # Logout unlinks the device and removes its credential directory
    assert await registry.disconnect("tenant-1") is True
    assert not (auth_root / "tenant-1").exists()


@pytest.mark.asyncio
async def test_remote_logout_forgets_device(tmp_path):
    auth_root = tmp_path / "auth_info"
    registry = build_registry(auth_root)
    await registry.start_session("tenant-1")
    await registry.await_pairing_image("tenant-1", timeout_s=5.0)
    socket = registry.engine.latest("tenant-1")
    await socket.emit_open()

    # Device removed from the phone's linked devices list
    await socket.emit_close(DisconnectReason.LOGGED_OUT)

    assert "tenant-1" not in registry
    assert not (auth_root / "tenant-1").exists()

    # Starting again means pairing from scratch
    await registry.start_session("tenant-1")
    image = await registry.await_pairing_image("tenant-1", timeout_s=5.0)
    assert image.startswith(DATA_URL_PREFIX)
    await registry.shutdown()


@pytest.mark.asyncio
async def test_many_sessions_in_parallel(tmp_path):
    registry = build_registry(tmp_path / "auth_info")
    session_ids = [f"tenant-{n}" for n in range(10)]

    await asyncio.gather(*(registry.start_session(session_id) for session_id in session_ids))
    images = await asyncio.gather(
        *(registry.await_pairing_image(session_id, timeout_s=5.0) for session_id in session_ids)
    )

    assert len(registry) == 10
    assert len(set(images)) == 10
    assert len(registry.engine.sockets) == 10
    await registry.shutdown()
