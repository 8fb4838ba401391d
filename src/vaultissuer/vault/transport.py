r"""HTTP transport to the Vault server.

Turns the issuer's server address and optional CA bundle into an
immutable :class:`Transport`.  When a bundle is supplied the TLS
context trusts exactly the certificates in it; otherwise the platform
default trust store is used unchanged.

The transport speaks JSON over ``urllib``.  It raises
:class:`~vaultissuer.errors.TransportError` only when no HTTP response
was received; error statuses are returned as a :class:`Response` so
that login, signing and health checks can each map them to their own
error type.
"""

from __future__ import annotations

import contextlib
import json
import logging
import ssl
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode, urlsplit

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from vaultissuer.errors import ConfigError, TransportError

if TYPE_CHECKING:
    from vaultissuer.config.settings import IssuerSettings

log = logging.getLogger(__name__)

TOKEN_HEADER = "X-Vault-Token"
NAMESPACE_HEADER = "X-Vault-Namespace"

_MAX_ERROR_BODY = 500


@dataclass(frozen=True)
class Response:
    """A completed HTTP exchange."""

    status: int
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:  # noqa: ANN401
        """Decode the body as JSON.

        Raises ``ValueError`` (including :class:`json.JSONDecodeError`
        and :class:`UnicodeDecodeError`) on malformed content.
        """
        return json.loads(self.body.decode("utf-8"))

    def error_text(self) -> str:
        """Backend-provided error text, or a truncated body."""
        with contextlib.suppress(ValueError):
            data = self.json()
            if isinstance(data, dict) and data.get("errors"):
                return "; ".join(str(e) for e in data["errors"])
        return self.body.decode("utf-8", errors="replace")[:_MAX_ERROR_BODY]


def build_ssl_context(ca_bundle: bytes | None) -> ssl.SSLContext:
    """Build the TLS context, trusting only *ca_bundle* when given.

    Raises
    ------
    ConfigError
        If *ca_bundle* holds no parsable PEM certificate.

    """
    if not ca_bundle:
        return ssl.create_default_context()

    try:
        certs = x509.load_pem_x509_certificates(ca_bundle)
    except ValueError as exc:
        msg = f"error loading Vault CA bundle: {exc}"
        raise ConfigError(msg) from exc

    pem = "".join(
        cert.public_bytes(serialization.Encoding.PEM).decode("ascii") for cert in certs
    )
    try:
        return ssl.create_default_context(cadata=pem)
    except ssl.SSLError as exc:
        msg = f"error loading Vault CA bundle: {exc}"
        raise ConfigError(msg) from exc


def normalize_address(server: str) -> str:
    """Validate the server URL and strip any trailing slash."""
    parts = urlsplit(server or "")
    if parts.scheme not in ("http", "https") or not parts.netloc:
        msg = f"Vault server address must be an http(s) URL with a host (got '{server}')"
        raise ConfigError(msg)
    return server.rstrip("/")


class Transport:
    """Immutable JSON-over-HTTP client bound to one Vault server.

    Safe to share between threads: the SSL context is built once and
    every request gets its own opener.
    """

    def __init__(
        self,
        address: str,
        ssl_context: ssl.SSLContext,
        *,
        timeout: float = 30,
        vault_namespace: str | None = None,
    ) -> None:
        self._address = address
        self._ssl_ctx = ssl_context
        self._timeout = timeout
        self._vault_namespace = vault_namespace

    @property
    def address(self) -> str:
        return self._address

    @property
    def timeout(self) -> float:
        return self._timeout

    def url(self, path: str, query: dict[str, str] | None = None) -> str:
        url = f"{self._address}/{path.lstrip('/')}"
        if query:
            url = f"{url}?{urlencode(query)}"
        return url

    def _build_request(
        self,
        method: str,
        url: str,
        payload: dict | None,
        token: str | None,
    ) -> urllib.request.Request:
        """Build a request with Vault headers and an optional JSON body."""
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        req = urllib.request.Request(
            url,
            data=data,
            method=method,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )
        if token:
            req.add_header(TOKEN_HEADER, token)
        if self._vault_namespace:
            req.add_header(NAMESPACE_HEADER, self._vault_namespace)
        return req

    def request(
        self,
        method: str,
        path: str,
        payload: dict | None = None,
        *,
        token: str | None = None,
        query: dict[str, str] | None = None,
    ) -> Response:
        """Send one request and return the response, whatever its status."""
        url = self.url(path, query)
        req = self._build_request(method, url, payload, token)
        handler = urllib.request.HTTPSHandler(context=self._ssl_ctx)
        opener = urllib.request.build_opener(handler)

        log.debug("%s %s", method, url)
        try:
            resp = opener.open(req, timeout=self._timeout)
        except urllib.error.HTTPError as exc:
            body = b""
            with contextlib.suppress(OSError):
                body = exc.read()
            exc.close()
            return Response(status=exc.code, body=body)
        except (urllib.error.URLError, OSError) as exc:
            reason = getattr(exc, "reason", exc)
            msg = f"failed to reach Vault at {url}: {reason}"
            raise TransportError(msg) from exc

        try:
            return Response(status=resp.status, body=resp.read())
        except OSError as exc:
            msg = f"failed to read response from Vault at {url}: {exc}"
            raise TransportError(msg) from exc
        finally:
            resp.close()

    def post_json(
        self,
        path: str,
        payload: dict,
        *,
        token: str | None = None,
    ) -> Response:
        return self.request("POST", path, payload, token=token)

    def get(
        self,
        path: str,
        *,
        token: str | None = None,
        query: dict[str, str] | None = None,
    ) -> Response:
        return self.request("GET", path, token=token, query=query)


def build_transport(settings: IssuerSettings) -> Transport:
    """Build the transport for *settings*.

    Raises
    ------
    ConfigError
        On a malformed server address or CA bundle.

    """
    address = normalize_address(settings.server)
    ctx = build_ssl_context(settings.ca_bundle)
    return Transport(
        address,
        ctx,
        timeout=settings.timeout_seconds,
        vault_namespace=settings.vault_namespace,
    )
