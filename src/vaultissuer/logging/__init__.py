"""Logging subsystem for the Vault issuer.

Public API::

    from vaultissuer.logging import configure_logging

    configure_logging(settings.logging)
"""

from vaultissuer.logging.setup import configure_logging

__all__ = ["configure_logging"]
