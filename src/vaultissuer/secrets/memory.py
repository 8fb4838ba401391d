"""In-process secret store backed by a dict."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any

from vaultissuer.errors import SecretLookupError
from vaultissuer.secrets.base import SecretStore

if TYPE_CHECKING:
    from vaultissuer.config.settings import SecretRef


class MemorySecretStore(SecretStore):
    """Holds secrets in memory, keyed by ``(namespace, name)``.

    Configured from ``secrets.options.secrets``, a mapping of
    ``"namespace/name"`` to ``{key: value}``.  Embedding code can also
    call :meth:`put` directly.
    """

    def __init__(self, options: dict[str, Any] | None = None) -> None:
        super().__init__(options)
        self._lock = threading.Lock()
        self._secrets: dict[tuple[str, str], dict[str, bytes]] = {}
        for qualified, data in (self._options.get("secrets") or {}).items():
            namespace, _, name = qualified.partition("/")
            self.put(namespace, name, data)

    def put(self, namespace: str, name: str, data: dict[str, str | bytes]) -> None:
        """Create or replace the secret ``namespace/name``."""
        encoded = {
            key: value.encode("utf-8") if isinstance(value, str) else bytes(value)
            for key, value in data.items()
        }
        with self._lock:
            self._secrets[(namespace, name)] = encoded

    def delete(self, namespace: str, name: str) -> None:
        with self._lock:
            self._secrets.pop((namespace, name), None)

    def get(self, ref: SecretRef) -> bytes:
        with self._lock:
            secret = self._secrets.get((ref.namespace, ref.name))
        if secret is None:
            msg = f"secret '{ref.namespace}/{ref.name}' not found"
            raise SecretLookupError(msg)
        if ref.key not in secret:
            msg = f"no data for '{ref.key}' in secret '{ref.namespace}/{ref.name}'"
            raise SecretLookupError(msg)
        return secret[ref.key]
