"""
Infrastructure module exports.

Configuration and bootstrap for the engine, credential and session backends.
"""

from .config import InfraConfig, get_config, EngineBackendType, CredentialBackendType
from .bootstrap import GatewayBootstrap, bootstrap_gateway

__all__ = [
    "InfraConfig",
    "get_config",
    "EngineBackendType",
    "CredentialBackendType",
    "GatewayBootstrap",
    "bootstrap_gateway",
]
