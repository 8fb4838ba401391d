"""Session establishment against Vault.

Two strategies, chosen by the type of the configured
:data:`~vaultissuer.config.settings.AuthStrategy`:

- :class:`TokenAuth`: read a pre-issued token from the secret store.
  No network round trip.
- :class:`AppRoleAuth`: read the secret id from the secret store and
  exchange it, with the configured role id, for a client token via
  ``POST /v1/auth/{path}/login``.

Wire contract for the AppRole login::

    POST /v1/auth/approle/login
    {"role_id": "...", "secret_id": "..."}

    200 {"auth": {"client_token": "s.xxxx", "lease_duration": 2764800,
                  "renewable": true, ...}, ...}

Credential values are never logged or placed in error messages.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from vaultissuer.config.settings import AppRoleAuth, TokenAuth
from vaultissuer.errors import (
    AuthDecodeError,
    AuthRequestError,
    ConfigError,
    EmptyTokenError,
    TransportError,
)

if TYPE_CHECKING:
    from vaultissuer.config.settings import AuthStrategy, SecretRef
    from vaultissuer.secrets.base import SecretStore
    from vaultissuer.vault.transport import Transport

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    """An authenticated Vault session.

    Attributes
    ----------
    token:
        The client token sent with every authenticated request.
    method:
        ``"token"`` or ``"approle"``.
    lease_duration:
        Token TTL in seconds as reported at login, or ``None`` when
        unknown (static tokens).
    renewable:
        Whether Vault reported the token as renewable.

    """

    token: str
    method: str
    lease_duration: int | None = None
    renewable: bool = False

    def __repr__(self) -> str:
        return (
            f"Session(method={self.method!r}, lease_duration={self.lease_duration!r}, "
            f"renewable={self.renewable!r})"
        )


def login_path(auth_path: str) -> str:
    """Return the login URL path for an AppRole mount."""
    return f"/v1/auth/{auth_path.strip('/')}/login"


def _read_secret(store: SecretStore, ref: SecretRef) -> str:
    raw = store.get(ref)
    return raw.decode("utf-8", errors="replace").strip()


def _token_session(auth: TokenAuth, store: SecretStore) -> Session:
    token = _read_secret(store, auth.secret_ref)
    if not token:
        msg = f"secret {auth.secret_ref} holds an empty token"
        raise EmptyTokenError(msg)
    log.debug("Using static token from secret %s", auth.secret_ref)
    return Session(token=token, method=auth.method)


def _approle_session(
    auth: AppRoleAuth,
    transport: Transport,
    store: SecretStore,
) -> Session:
    role_id = auth.role_id.strip()
    secret_id = _read_secret(store, auth.secret_ref)

    path = login_path(auth.path)
    try:
        resp = transport.post_json(
            path,
            {"role_id": role_id, "secret_id": secret_id},
        )
    except TransportError as exc:
        msg = f"error logging in to Vault server: {exc.detail}"
        raise AuthRequestError(msg, retryable=True) from exc

    if not resp.ok:
        msg = f"error logging in to Vault server: HTTP {resp.status}: {resp.error_text()}"
        raise AuthRequestError(msg, retryable=resp.status >= 500)

    try:
        result = resp.json()
    except ValueError as exc:
        msg = f"unable to decode JSON payload: {exc}"
        raise AuthDecodeError(msg) from exc
    if not isinstance(result, dict):
        msg = "unable to decode JSON payload: expected an object"
        raise AuthDecodeError(msg)

    auth_block = result.get("auth")
    if auth_block is not None and not isinstance(auth_block, dict):
        msg = "unable to read token: 'auth' is not an object"
        raise AuthDecodeError(msg)
    auth_block = auth_block or {}

    token = auth_block.get("client_token") or ""
    if not isinstance(token, str):
        msg = "unable to read token: 'client_token' is not a string"
        raise AuthDecodeError(msg)
    if not token:
        msg = "no token returned"
        raise EmptyTokenError(msg)

    lease = auth_block.get("lease_duration")
    log.info(
        "Logged in to Vault via %s (lease_duration=%s)",
        path,
        lease,
    )
    return Session(
        token=token,
        method=auth.method,
        lease_duration=lease if isinstance(lease, int) else None,
        renewable=bool(auth_block.get("renewable", False)),
    )


def authenticate(
    auth: AuthStrategy | None,
    transport: Transport,
    store: SecretStore,
) -> Session:
    """Resolve *auth* into a live :class:`Session`.

    Raises
    ------
    ConfigError
        If no strategy is configured (before any network access).
    SecretLookupError
        If the referenced credential is missing.
    AuthRequestError, AuthDecodeError, EmptyTokenError
        On AppRole login failures.

    """
    if isinstance(auth, TokenAuth):
        return _token_session(auth, store)
    if isinstance(auth, AppRoleAuth):
        return _approle_session(auth, transport, store)
    msg = "no authentication method configured (set token_secret_ref or app_role)"
    raise ConfigError(msg)
