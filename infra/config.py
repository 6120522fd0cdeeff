"""
Infrastructure configuration system.

Environment-based backend selection with sensible defaults.
The real engine (Node.js bridge) and on-disk credentials are the default;
the stub engine and in-memory credentials serve tests and offline work.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from config import Config
from services.credentials import CredentialStore, FileSystemCredentialStore, InMemoryCredentialStore
from services.engine import BridgeEngine, ProtocolEngine, StubEngine
from services.engine.bridge import DEFAULT_BRIDGE_SCRIPT
from services.pairing import render_qr_data_url
from sessions import DeliveryMultiplexer, ReconnectPolicy, SessionRegistry

EngineBackendType = Literal["stub", "bridge"]
CredentialBackendType = Literal["memory", "filesystem"]


@dataclass
class InfraConfig:
    """Infrastructure configuration from environment."""
    
    # Protocol engine
    engine_backend: EngineBackendType
    node_binary: str
    bridge_script: str
    bridge_request_timeout_s: float
    stub_auto_qr: bool
    
    # Credentials
    credential_backend: CredentialBackendType
    auth_folder: str
    
    # Session lifecycle
    pairing_timeout_s: float
    message_buffer_size: int
    reconnect_max_attempts: int
    reconnect_base_delay_s: float
    reconnect_max_delay_s: float
    
    @classmethod
    def from_env(cls) -> "InfraConfig":
        """
        Load configuration from environment variables.
        
        Defaults:
        - Engine: bridge (node + bridge.js)
        - Credentials: filesystem under Config.AUTH_FOLDER
        - Pairing wait: 5s, buffer: 50 messages, reconnect: 5 attempts
        """
        return cls(
            # Engine Configuration
            engine_backend=os.getenv("ENGINE_BACKEND", "bridge"),  # type: ignore
            node_binary=os.getenv("NODE_BINARY", "node"),
            bridge_script=os.getenv("BRIDGE_SCRIPT", str(DEFAULT_BRIDGE_SCRIPT)),
            bridge_request_timeout_s=float(os.getenv("BRIDGE_REQUEST_TIMEOUT_SECONDS", "30")),
            stub_auto_qr=os.getenv("STUB_AUTO_QR", "true").lower() == "true",
            
            # Credential Configuration
            credential_backend=os.getenv("CREDENTIAL_BACKEND", "filesystem"),  # type: ignore
            auth_folder=Config.AUTH_FOLDER,
            
            # Lifecycle Configuration
            pairing_timeout_s=float(os.getenv("PAIRING_TIMEOUT_SECONDS", "5")),
            message_buffer_size=int(os.getenv("MESSAGE_BUFFER_SIZE", "50")),
            reconnect_max_attempts=int(os.getenv("RECONNECT_MAX_ATTEMPTS", "5")),
            reconnect_base_delay_s=float(os.getenv("RECONNECT_BASE_DELAY_SECONDS", "1.0")),
            reconnect_max_delay_s=float(os.getenv("RECONNECT_MAX_DELAY_SECONDS", "30.0")),
        )
    
    def create_engine(self) -> ProtocolEngine:
        """Create protocol engine based on configuration."""
        if self.engine_backend == "stub":
            return StubEngine(auto_qr=self.stub_auto_qr)
        # Default to the bridge
        return BridgeEngine(
            node_binary=self.node_binary,
            script=Path(self.bridge_script),
            request_timeout_s=self.bridge_request_timeout_s,
        )
    
    def create_credential_store(self) -> CredentialStore:
        """Create credential store based on configuration."""
        if self.credential_backend == "memory":
            return InMemoryCredentialStore()
        # Default to filesystem
        Path(self.auth_folder).mkdir(parents=True, exist_ok=True)
        return FileSystemCredentialStore(self.auth_folder)
    
    def create_reconnect_policy(self) -> ReconnectPolicy:
        return ReconnectPolicy(
            max_attempts=self.reconnect_max_attempts,
            base_delay_s=self.reconnect_base_delay_s,
            max_delay_s=self.reconnect_max_delay_s,
        )
    
    def create_registry(self) -> SessionRegistry:
        """Wire engine, credentials and renderer into a fresh registry."""
        return SessionRegistry(
            engine=self.create_engine(),
            credentials=self.create_credential_store(),
            renderer=render_qr_data_url,
            delivery=DeliveryMultiplexer(),
            reconnect_policy=self.create_reconnect_policy(),
            buffer_size=self.message_buffer_size,
        )


def get_config() -> InfraConfig:
    """Get global infrastructure configuration."""
    return InfraConfig.from_env()
