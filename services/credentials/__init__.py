"""
Credential store exports.

Clean interface for the registry to import credential components.
"""

from .base import AuthState, CredentialFiles, CredentialStore
from .filesystem import FileSystemCredentialStore
from .stub import InMemoryCredentialStore

__all__ = [
    "AuthState",
    "CredentialFiles",
    "CredentialStore",
    "FileSystemCredentialStore",
    "InMemoryCredentialStore",
]
