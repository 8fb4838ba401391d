"""Vault issuer client, the single entry point used by the controller.

Construction builds the transport and authenticates; it either yields
a ready client or raises.  The session is fixed for the lifetime of the
instance: when Vault later rejects the token, :meth:`VaultClient.sign`
raises :class:`SignRequestError` with ``token_rejected`` set and the
caller builds a new client.

Usage::

    client = VaultClient(settings.issuer, secret_store)
    chain_pem, ca_pem = client.sign(csr_pem, timedelta(days=90))
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from vaultissuer.errors import SignRequestError, TransportError
from vaultissuer.logging.sanitize import sanitize_parameters
from vaultissuer.secrets.registry import load_secret_store
from vaultissuer.vault.auth import Session, authenticate
from vaultissuer.vault.bundle import CertificateBundle, decode_sign_response
from vaultissuer.vault.health import HealthStatus, check_health
from vaultissuer.vault.request import build_signing_request, sign_path
from vaultissuer.vault.transport import Transport, build_transport

if TYPE_CHECKING:
    from datetime import timedelta

    from vaultissuer.config.settings import IssuerSettings, VaultIssuerSettings
    from vaultissuer.secrets.base import SecretStore

log = logging.getLogger(__name__)


class VaultClient:
    """Signs CSRs through a Vault PKI mount.

    Safe to share between threads; nothing is mutated after
    construction.

    Parameters
    ----------
    settings:
        The issuer section of the configuration.
    secret_store:
        Where token / secret-id material is looked up.

    Raises
    ------
    ConfigError
        On a bad server address or CA bundle, or when no authentication
        method is configured.  Raised before any network access.
    SecretLookupError, AuthRequestError, AuthDecodeError, EmptyTokenError
        When authentication fails.

    """

    def __init__(
        self,
        settings: IssuerSettings,
        secret_store: SecretStore,
        *,
        transport: Transport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport or build_transport(settings)
        self._session = authenticate(settings.auth, self._transport, secret_store)
        self._sign_path = sign_path(settings.path)
        log.info(
            "Vault client ready for %s (auth=%s, path=%s)",
            self._transport.address,
            self._session.method,
            self._sign_path,
            extra={"issuer": settings.name, "operation": "connect"},
        )

    @classmethod
    def from_settings(cls, settings: VaultIssuerSettings) -> VaultClient:
        """Build a client with the secret store named in *settings*."""
        store = load_secret_store(settings.secrets)
        return cls(settings.issuer, store)

    @property
    def settings(self) -> IssuerSettings:
        return self._settings

    @property
    def session(self) -> Session:
        return self._session

    def sign_bundle(self, csr_pem: bytes | str, duration: timedelta) -> CertificateBundle:
        """Sign *csr_pem* and return the decoded bundle.

        Raises
        ------
        CSRDecodeError
            If the CSR is malformed; no request is sent.
        SignRequestError
            On transport failure or a non-2xx response.
        ResponseDecodeError, BundleParseError
            If the response cannot be decoded.

        """
        request = build_signing_request(csr_pem, duration)
        log.debug(
            "Signing request parameters: %s",
            sanitize_parameters(request.parameters),
            extra={"issuer": self._settings.name, "operation": "sign"},
        )

        try:
            resp = self._transport.post_json(
                self._sign_path,
                request.parameters,
                token=self._session.token,
            )
        except TransportError as exc:
            msg = f"failed to sign certificate by vault: {exc.detail}"
            raise SignRequestError(msg, retryable=True) from exc

        if not resp.ok:
            msg = f"failed to sign certificate by vault: HTTP {resp.status}: {resp.error_text()}"
            raise SignRequestError(
                msg,
                retryable=resp.status >= 500,
                status=resp.status,
            )

        bundle = decode_sign_response(resp.body)
        log.info(
            "Vault signed certificate: serial=%s, common_name=%s",
            bundle.serial_number,
            request.parameters["common_name"],
            extra={"issuer": self._settings.name, "operation": "sign"},
        )
        return bundle

    def sign(
        self,
        csr_pem: bytes | str,
        duration: timedelta,
    ) -> tuple[bytes, bytes | None]:
        """Sign *csr_pem* for *duration*.

        Returns
        -------
        tuple[bytes, bytes | None]
            The PEM chain (leaf first) and the issuing CA PEM, which is
            ``None`` when the backend returned no chain.

        """
        bundle = self.sign_bundle(csr_pem, duration)
        return bundle.chain_pem(), bundle.ca_pem()

    def health(self) -> HealthStatus:
        """Return the backend's ``sys/health`` status."""
        return check_health(self._transport)

    def __repr__(self) -> str:
        return f"<VaultClient server={self._transport.address} path={self._sign_path}>"
