"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders
are what the application actually reads.

Access pattern::

    from vaultissuer.config import build_settings

    settings = build_settings(raw)
    print(settings.issuer.server, settings.issuer.path)

The authentication section becomes an explicit tagged union,
:data:`AuthStrategy`, resolved exactly once here.  Ambiguous input
(both strategies configured) is rejected; an empty section yields
``auth=None`` which the client refuses before touching the network.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from vaultissuer.errors import ConfigError

DEFAULT_TOKEN_KEY = "token"
DEFAULT_APPROLE_PATH = "approle"

# ---------------------------------------------------------------------------
# Secret references
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SecretRef:
    """Location of credential material in the secret store."""

    namespace: str
    name: str
    key: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}[{self.key}]"


# ---------------------------------------------------------------------------
# Authentication strategies
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenAuth:
    """Pre-issued static token held in the secret store."""

    secret_ref: SecretRef

    method = "token"


@dataclass(frozen=True)
class AppRoleAuth:
    """AppRole login: role id from config, secret id from the secret store."""

    role_id: str
    secret_ref: SecretRef
    path: str = DEFAULT_APPROLE_PATH

    method = "approle"


AuthStrategy = Union[TokenAuth, AppRoleAuth]


def _build_secret_ref(
    data: dict | None,
    namespace: str,
    *,
    label: str,
    default_key: str | None = None,
) -> SecretRef:
    d = data or {}
    name = (d.get("name") or "").strip()
    if not name:
        msg = f"{label}.name is required"
        raise ConfigError(msg)
    key = (d.get("key") or default_key or "").strip()
    if not key:
        msg = f"{label}.key is required"
        raise ConfigError(msg)
    return SecretRef(
        namespace=d.get("namespace") or namespace,
        name=name,
        key=key,
    )


def build_auth(data: dict | None, namespace: str) -> AuthStrategy | None:
    """Resolve the ``vault.auth`` section into a single strategy.

    Returns ``None`` when neither strategy is configured.

    Raises
    ------
    ConfigError
        When both strategies are configured, or a configured strategy
        is missing a required field.

    """
    d = data or {}
    token_d = d.get("token_secret_ref")
    role_d = d.get("app_role")

    if token_d and role_d:
        msg = (
            "vault.auth must configure exactly one of token_secret_ref "
            "or app_role, not both"
        )
        raise ConfigError(msg)

    if token_d:
        return TokenAuth(
            secret_ref=_build_secret_ref(
                token_d,
                namespace,
                label="vault.auth.token_secret_ref",
                default_key=DEFAULT_TOKEN_KEY,
            ),
        )

    if role_d:
        role_id = (role_d.get("role_id") or "").strip()
        if not role_id:
            msg = "vault.auth.app_role.role_id is required"
            raise ConfigError(msg)
        path = (role_d.get("path") or "").strip("/ ") or DEFAULT_APPROLE_PATH
        return AppRoleAuth(
            role_id=role_id,
            secret_ref=_build_secret_ref(
                role_d.get("secret_ref"),
                namespace,
                label="vault.auth.app_role.secret_ref",
            ),
            path=path,
        )

    return None


# ---------------------------------------------------------------------------
# Issuer
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IssuerSettings:
    """Everything needed to construct a Vault client for one issuer."""

    name: str
    namespace: str
    server: str
    path: str
    ca_bundle: bytes | None
    auth: AuthStrategy | None
    vault_namespace: str | None
    timeout_seconds: float


def _load_ca_bundle(d: dict) -> bytes | None:
    inline = d.get("ca_bundle_pem")
    if inline:
        return inline.encode("utf-8") if isinstance(inline, str) else inline
    path = d.get("ca_bundle")
    if not path:
        return None
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        msg = f"Cannot read vault.ca_bundle '{path}': {exc}"
        raise ConfigError(msg) from exc


def _build_issuer(issuer_d: dict | None, vault_d: dict | None) -> IssuerSettings:
    i = issuer_d or {}
    v = vault_d or {}
    namespace = i.get("namespace", "default")
    return IssuerSettings(
        name=i.get("name", "vault-issuer"),
        namespace=namespace,
        server=v.get("server", ""),
        path=v.get("path", ""),
        ca_bundle=_load_ca_bundle(v),
        auth=build_auth(v.get("auth"), namespace),
        vault_namespace=v.get("vault_namespace"),
        timeout_seconds=float(v.get("timeout_seconds", 30)),
    )


# ---------------------------------------------------------------------------
# Secret store
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SecretStoreSettings:
    """Which secret store backs credential lookups."""

    backend: str
    directory: str
    options: dict[str, Any]


def _build_secrets(data: dict | None) -> SecretStoreSettings:
    d = data or {}
    return SecretStoreSettings(
        backend=d.get("backend", "directory"),
        directory=d.get("directory", "/var/run/secrets/vault-issuer"),
        options=dict(d.get("options") or {}),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    """Application logging configuration (level, format)."""

    level: str
    format: str


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "json"),
    )


# ---------------------------------------------------------------------------
# Root settings aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VaultIssuerSettings:
    issuer: IssuerSettings
    secrets: SecretStoreSettings
    logging: LoggingSettings


def build_issuer_settings(data: dict) -> IssuerSettings:
    """Build only the issuer section from raw ``issuer``/``vault`` data."""
    return _build_issuer(data.get("issuer"), data.get("vault"))


def build_settings(data: dict) -> VaultIssuerSettings:
    """Build the full typed settings tree from raw config data.

    Called once during :class:`IssuerConfig` initialization after
    schema validation and environment-variable resolution.
    """
    return VaultIssuerSettings(
        issuer=build_issuer_settings(data),
        secrets=_build_secrets(data.get("secrets")),
        logging=_build_logging(data.get("logging")),
    )
