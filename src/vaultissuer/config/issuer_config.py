"""Issuer configuration loader.

Lifecycle::

    config = IssuerConfig(config_file="/etc/vault-issuer/config.yaml")
    config.settings.issuer.server      # typed access
    config.data["vault"]["path"]       # raw, env-resolved dict

Loading runs in a fixed order: parse YAML/JSON, resolve ``${VAR}``
references, validate against the bundled JSON schema, run cross-field
checks, then materialise the frozen settings tree.  Every problem found
by the last two steps is reported at once in a single
:class:`ConfigValidationError`.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import yaml
from jsonschema import Draft7Validator

from vaultissuer.config.settings import VaultIssuerSettings, build_settings
from vaultissuer.errors import ConfigError

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

_CLASS_PATH_RE = re.compile(
    r"^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)+$",
)

_BUILTIN_SECRET_BACKENDS = frozenset({"directory", "memory"})

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Validation error collector
# ---------------------------------------------------------------------------


class ConfigValidationError(ConfigError):
    """Raised when schema or cross-field validation finds problems."""

    def __init__(self, errors: list[str]) -> None:
        """Store *errors* and build a human-readable message."""
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(
    data: Any,  # noqa: ANN401
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, child_path)


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class IssuerConfig:
    """Configuration for one Vault issuer.

    The JSON schema is bundled at ``config/schema.json``; callers supply
    only ``config_file``.  After construction the typed settings tree is
    available at :pyattr:`settings` and the raw dict via :pyattr:`data`.
    """

    def __init__(self, *, config_file: str | Path) -> None:
        self._source = Path(config_file)
        self._data = self._load()
        _resolve_env_vars(self._data)
        self._validate_schema()
        self.additional_checks()
        try:
            self._settings = build_settings(self._data)
        except ConfigValidationError:
            raise
        except ConfigError as exc:
            raise ConfigValidationError([exc.detail]) from exc

    # -- loading ------------------------------------------------------------

    def _load(self) -> dict:
        """Read the config file as YAML or JSON depending on its suffix."""
        try:
            with self._source.open(encoding="utf-8") as f:
                if self._source.suffix in (".yaml", ".yml"):
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
        except OSError as exc:
            msg = f"Cannot read configuration file {self._source}: {exc}"
            raise ConfigError(msg) from exc
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            msg = f"Cannot parse configuration file {self._source}: {exc}"
            raise ConfigError(msg) from exc

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigValidationError(
                ["top level of the configuration must be a mapping"],
            )
        return data

    def _validate_schema(self) -> None:
        schema = json.loads(_SCHEMA_PATH.read_text(encoding="utf-8"))
        validator = Draft7Validator(schema)
        errors = []
        for err in sorted(validator.iter_errors(self._data), key=lambda e: list(e.path)):
            location = ".".join(str(p) for p in err.path) or "<root>"
            errors.append(f"{location}: {err.message}")
        if errors:
            raise ConfigValidationError(errors)

    # -- typed access -------------------------------------------------------

    @property
    def data(self) -> dict:
        """Raw configuration dict with env vars resolved."""
        return self._data

    @property
    def settings(self) -> VaultIssuerSettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    # -- cross-field validation ---------------------------------------------

    def additional_checks(self) -> None:
        """Semantic & cross-field validation, run after the schema passes."""
        errors: list[str] = []
        warnings: list[str] = []

        vault = self._data.get("vault") or {}
        auth = vault.get("auth") or {}
        secrets = self._data.get("secrets") or {}

        # -- vault --
        server = vault.get("server", "")
        parts = urlsplit(server)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            errors.append(
                f"vault.server must be an http(s) URL with a host (got '{server}')",
            )
        elif parts.scheme == "http":
            warnings.append(
                "vault.server uses plain http; session tokens will be "
                "sent unencrypted",
            )
            if vault.get("ca_bundle") or vault.get("ca_bundle_pem"):
                warnings.append(
                    "vault.ca_bundle is set but vault.server is plain http, so "
                    "the bundle will never be used",
                )

        if not vault.get("path", "").strip("/"):
            errors.append("vault.path must name the PKI signing endpoint")

        if vault.get("ca_bundle") and vault.get("ca_bundle_pem"):
            errors.append(
                "vault.ca_bundle and vault.ca_bundle_pem are mutually exclusive",
            )

        # -- auth --
        if auth.get("token_secret_ref") and auth.get("app_role"):
            errors.append(
                "vault.auth must configure exactly one of token_secret_ref "
                "or app_role, not both",
            )
        elif not auth.get("token_secret_ref") and not auth.get("app_role"):
            warnings.append(
                "vault.auth configures no authentication method; "
                "client construction will fail",
            )

        # -- secrets --
        backend = secrets.get("backend", "directory")
        if backend.startswith("ext:"):
            class_path = backend[4:]
            if not _CLASS_PATH_RE.match(class_path):
                errors.append(
                    f"secrets.backend '{backend}' is not a valid fully "
                    "qualified Python class path "
                    "(expected 'ext:package.module.ClassName')",
                )
        elif backend not in _BUILTIN_SECRET_BACKENDS:
            errors.append(
                f"secrets.backend '{backend}' is unknown; built-in options: "
                f"{sorted(_BUILTIN_SECRET_BACKENDS)}",
            )

        for w in warnings:
            log.warning("Config warning: %s", w)

        if errors:
            raise ConfigValidationError(errors)

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        return f"<IssuerConfig config_file={self._source}>"
