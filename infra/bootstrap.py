"""
Infrastructure initialization and bootstrap.

Singleton pattern: one session registry per process.
"""

from typing import Optional

from sessions import SessionRegistry

from .config import InfraConfig, get_config


class GatewayBootstrap:
    """
    Bootstrap infrastructure based on configuration.
    
    Singleton pattern - single instance per process.
    """
    
    _instance: Optional["GatewayBootstrap"] = None
    
    def __init__(
        self,
        config: Optional[InfraConfig] = None,
        registry: Optional[SessionRegistry] = None,
    ):
        """Initialize bootstrap with configuration (or a prebuilt registry)."""
        self.config = config or get_config()
        self.registry = registry if registry is not None else self.config.create_registry()
    
    @classmethod
    def get_instance(cls, config: Optional[InfraConfig] = None) -> "GatewayBootstrap":
        """
        Get singleton instance.
        
        Args:
            config: Optional custom configuration (only used first time)
            
        Returns:
            Singleton GatewayBootstrap instance
        """
        if cls._instance is None:
            cls._instance = cls(config)
        return cls._instance
    
    @classmethod
    def reset(cls):
        """Reset singleton (for testing)."""
        cls._instance = None
    
    def get_registry(self) -> SessionRegistry:
        """Get the session registry."""
        return self.registry
    
    @property
    def pairing_timeout_s(self) -> float:
        return self.config.pairing_timeout_s
    
    def __repr__(self) -> str:
        """String representation showing configured backends."""
        return (
            f"GatewayBootstrap(engine={self.config.engine_backend}, "
            f"credentials={self.config.credential_backend}, "
            f"sessions={len(self.registry)})"
        )


def bootstrap_gateway(config: Optional[InfraConfig] = None) -> GatewayBootstrap:
    """
    Bootstrap the gateway backends.
    
    Args:
        config: Optional custom configuration
        
    Returns:
        GatewayBootstrap instance with the registry initialized
    """
    return GatewayBootstrap.get_instance(config)
