"""Vault PKI client.

Exports the client facade and the values it produces.
"""

from vaultissuer.vault.auth import Session
from vaultissuer.vault.bundle import CertificateBundle
from vaultissuer.vault.client import VaultClient
from vaultissuer.vault.health import HealthChecker, HealthStatus

__all__ = [
    "CertificateBundle",
    "HealthChecker",
    "HealthStatus",
    "Session",
    "VaultClient",
]
