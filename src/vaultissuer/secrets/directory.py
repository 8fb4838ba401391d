"""Secret store reading mounted secret files.

Layout on disk::

    <directory>/<namespace>/<name>/<key>

which matches how Kubernetes projects a secret volume when each
secret is mounted under its namespace and name.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

from vaultissuer.errors import ConfigError, SecretLookupError
from vaultissuer.secrets.base import SecretStore

if TYPE_CHECKING:
    from vaultissuer.config.settings import SecretRef

log = logging.getLogger(__name__)

# A path segment: no separators, no "." / ".." traversal.
_SEGMENT_RE = re.compile(r"^(?!\.{1,2}$)[A-Za-z0-9._-]+$")


class DirectorySecretStore(SecretStore):
    """Reads secrets from files below a root directory."""

    def __init__(
        self,
        directory: str | Path,
        options: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(options)
        if not directory:
            msg = "secrets.directory is required for the directory secret store"
            raise ConfigError(msg)
        self._root = Path(directory)

    @property
    def root(self) -> Path:
        return self._root

    def get(self, ref: SecretRef) -> bytes:
        for label, segment in (
            ("namespace", ref.namespace),
            ("name", ref.name),
            ("key", ref.key),
        ):
            if not _SEGMENT_RE.match(segment):
                msg = f"invalid secret {label} '{segment}'"
                raise SecretLookupError(msg, retryable=False)

        secret_dir = self._root / ref.namespace / ref.name
        if not secret_dir.is_dir():
            msg = f"secret '{ref.namespace}/{ref.name}' not found"
            raise SecretLookupError(msg)

        key_file = secret_dir / ref.key
        try:
            data = key_file.read_bytes()
        except FileNotFoundError as exc:
            msg = f"no data for '{ref.key}' in secret '{ref.namespace}/{ref.name}'"
            raise SecretLookupError(msg) from exc
        except OSError as exc:
            msg = f"cannot read secret '{ref.namespace}/{ref.name}': {exc.strerror}"
            raise SecretLookupError(msg) from exc

        log.debug("Read secret %s from %s", ref, secret_dir)
        return data
