"""Pluggable secret stores holding raw credential material.

Exports the abstract base class, the built-in stores, and the
registry loader.
"""

from vaultissuer.secrets.base import SecretStore
from vaultissuer.secrets.directory import DirectorySecretStore
from vaultissuer.secrets.memory import MemorySecretStore
from vaultissuer.secrets.registry import load_secret_store

__all__ = [
    "DirectorySecretStore",
    "MemorySecretStore",
    "SecretStore",
    "load_secret_store",
]
