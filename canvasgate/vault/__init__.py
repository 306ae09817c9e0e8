"""Credential encryption and the key vault."""

from .encryption import EncryptionManager
from .vault import KeyVault

__all__ = ["EncryptionManager", "KeyVault"]
