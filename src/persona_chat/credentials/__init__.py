"""Credential pool and rotation."""

from .providers import (
    CredentialProvider,
    NullCredentialProvider,
    StaticCredentialProvider,
    StoredCredentialProvider,
)
from .rotation import KeyRotationPolicy

__all__ = [
    "CredentialProvider",
    "KeyRotationPolicy",
    "NullCredentialProvider",
    "StaticCredentialProvider",
    "StoredCredentialProvider",
]
