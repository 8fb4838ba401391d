"""Secret store registry.

Loads the configured secret store by name and returns an initialised
:class:`SecretStore` instance.  Supports built-in stores (``directory``,
``memory``) and custom stores via the ``ext:`` prefix.

Usage::

    from vaultissuer.secrets.registry import load_secret_store

    store = load_secret_store(settings.secrets)
    token = store.get(ref)
"""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING

from vaultissuer.errors import ConfigError
from vaultissuer.secrets.base import SecretStore

if TYPE_CHECKING:
    from vaultissuer.config.settings import SecretStoreSettings

log = logging.getLogger(__name__)

# Maps config string → (module_path, class_name)
_BUILTIN_STORES: dict[str, tuple[str, str]] = {
    "directory": ("vaultissuer.secrets.directory", "DirectorySecretStore"),
    "memory": ("vaultissuer.secrets.memory", "MemorySecretStore"),
}


def load_secret_store(settings: SecretStoreSettings) -> SecretStore:
    """Load and return the configured secret store.

    Raises
    ------
    ConfigError
        If the store cannot be loaded.

    """
    name = settings.backend

    if name in _BUILTIN_STORES:
        return _load_builtin(name, settings)
    if name.startswith("ext:"):
        return _load_external(name[4:], settings)
    msg = (
        f"Unknown secret store '{name}'; "
        f"built-in options: {sorted(_BUILTIN_STORES)}. "
        f"Use 'ext:mypackage.module.ClassName' for custom stores."
    )
    raise ConfigError(msg)


def _load_builtin(name: str, settings: SecretStoreSettings) -> SecretStore:
    """Load a built-in secret store."""
    mod_path, cls_name = _BUILTIN_STORES[name]
    module = importlib.import_module(mod_path)
    cls = getattr(module, cls_name)

    if name == "directory":
        store = cls(settings.directory, settings.options)
    else:
        store = cls(settings.options)
    log.info("Loaded secret store: %s", name)
    return store


def _load_external(fqn: str, settings: SecretStoreSettings) -> SecretStore:
    """Load a custom secret store by fully-qualified class name.

    The class is constructed with the ``secrets.options`` mapping.
    """
    module_path, _, cls_name = fqn.rpartition(".")
    if not module_path:
        msg = (
            f"Invalid external secret store '{fqn}': must be fully "
            "qualified (e.g. 'mypackage.module.ClassName')"
        )
        raise ConfigError(msg)

    try:
        module = importlib.import_module(module_path)
        cls = getattr(module, cls_name)
    except (ImportError, AttributeError) as exc:
        msg = f"Failed to load external secret store '{fqn}': {exc}"
        raise ConfigError(msg) from exc

    if not (isinstance(cls, type) and issubclass(cls, SecretStore)):
        msg = f"External secret store '{fqn}' must be a subclass of SecretStore"
        raise ConfigError(msg)

    get = getattr(cls, "get", None)
    if get is None or getattr(get, "__isabstractmethod__", False):
        msg = f"External secret store '{fqn}' does not implement 'get()'"
        raise ConfigError(msg)

    store = cls(settings.options)
    log.info("Loaded external secret store: %s", fqn)
    return store
