"""Abstract base class for secret stores.

The issuer never holds raw credential material in its configuration;
it holds :class:`~vaultissuer.config.settings.SecretRef` triples and
asks a :class:`SecretStore` for the bytes at authentication time.

Implementations must raise :class:`SecretLookupError` when either the
secret or the key inside it does not exist, and must never include the
secret value in that error.
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from vaultissuer.config.settings import SecretRef


class SecretStore(abc.ABC):
    """Read-only lookup of credential material by reference.

    Parameters
    ----------
    options:
        The free-form ``secrets.options`` mapping from configuration.

    """

    def __init__(self, options: dict[str, Any] | None = None) -> None:
        self._options = dict(options or {})

    @abc.abstractmethod
    def get(self, ref: SecretRef) -> bytes:
        """Return the raw bytes stored under *ref*.

        Raises
        ------
        SecretLookupError
            If the secret or the key is absent.

        """
