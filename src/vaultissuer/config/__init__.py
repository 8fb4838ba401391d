"""Configuration subsystem for the Vault issuer.

Public API::

    from vaultissuer.config import IssuerConfig

    config = IssuerConfig(config_file="config.yaml")
    issuer = config.settings.issuer     # typed access
"""

from vaultissuer.config.issuer_config import (
    ConfigValidationError,
    IssuerConfig,
)
from vaultissuer.config.settings import (
    AppRoleAuth,
    AuthStrategy,
    IssuerSettings,
    LoggingSettings,
    SecretRef,
    SecretStoreSettings,
    TokenAuth,
    VaultIssuerSettings,
    build_auth,
    build_issuer_settings,
    build_settings,
)

__all__ = [
    "AppRoleAuth",
    "AuthStrategy",
    "ConfigValidationError",
    "IssuerConfig",
    "IssuerSettings",
    "LoggingSettings",
    "SecretRef",
    "SecretStoreSettings",
    "TokenAuth",
    "VaultIssuerSettings",
    "build_auth",
    "build_issuer_settings",
    "build_settings",
]
