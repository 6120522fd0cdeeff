"""
Configuration management for the WhatsApp session gateway.

Loads environment variables from .env file and provides typed access to configuration.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).parent

# Load environment variables from .env file
env_path = PROJECT_ROOT / ".env"
load_dotenv(env_path)


def _default_auth_folder(is_production: bool) -> str:
    # Serverless hosts only allow writes under /tmp
    if is_production:
        return "/tmp/auth_info"
    return str(PROJECT_ROOT / "auth_info")


class Config:
    """Configuration class for the gateway."""
    
    # Server
    PORT = int(os.getenv("PORT", "3000"))
    NODE_ENV = os.getenv("NODE_ENV", "development")
    IS_PRODUCTION = NODE_ENV == "production"
    ENVIRONMENT = "production" if IS_PRODUCTION else "development"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    
    # CORS (comma-separated)
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "*").split(",")
        if origin.strip()
    ]
    
    # Credential storage root, one directory per session
    AUTH_FOLDER = os.getenv("AUTH_FOLDER") or _default_auth_folder(IS_PRODUCTION)
    
    @classmethod
    def validate(cls) -> bool:
        """Validate that configuration is usable."""
        problems = []
        if not 0 < cls.PORT < 65536:
            problems.append(f"PORT out of range: {cls.PORT}")
        if not cls.CORS_ORIGINS:
            problems.append("CORS_ORIGINS is empty")
        
        if problems:
            print(f"⚠️  Invalid configuration: {'; '.join(problems)}")
            return False
        
        return True


if __name__ == "__main__":
    # Test configuration loading
    print("Configuration loaded:")
    print(f"  Port: {Config.PORT}")
    print(f"  Environment: {Config.ENVIRONMENT}")
    print(f"  Log Level: {Config.LOG_LEVEL}")
    print(f"  CORS Origins: {', '.join(Config.CORS_ORIGINS)}")
    print(f"  Auth Folder: {Config.AUTH_FOLDER}")
    print(f"\n  Validation: {'✓ PASSED' if Config.validate() else '✗ FAILED'}")
