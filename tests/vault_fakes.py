"""Test doubles: key/CSR/certificate factories and an in-process fake Vault."""

from __future__ import annotations

import base64
import contextlib
import ipaddress
import json
import urllib.error
from datetime import UTC, datetime, timedelta
from io import BytesIO
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlsplit

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from vaultissuer.config.settings import (
    AppRoleAuth,
    IssuerSettings,
    SecretRef,
    TokenAuth,
)

SERVER = "https://vault.example.com:8200"
SIGN_PATH = "pki/sign/example-dot-com"
TOKEN = "s.test-token"

# ---------------------------------------------------------------------------
# Keys, CSRs, certificates
# ---------------------------------------------------------------------------


def make_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


def make_csr(
    common_name: str = "test.example.com",
    dns_names: tuple[str, ...] = ("test.example.com", "www.example.com"),
    ips: tuple[str, ...] = (),
    key: ec.EllipticCurvePrivateKey | None = None,
) -> tuple[bytes, ec.EllipticCurvePrivateKey]:
    """Generate a PEM CSR and return it with its private key."""
    key = key or make_key()
    builder = x509.CertificateSigningRequestBuilder()
    if common_name:
        builder = builder.subject_name(
            x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)]),
        )
    else:
        builder = builder.subject_name(x509.Name([]))
    sans: list[x509.GeneralName] = [x509.DNSName(d) for d in dns_names]
    sans += [x509.IPAddress(ipaddress.ip_address(ip)) for ip in ips]
    if sans:
        builder = builder.add_extension(
            x509.SubjectAlternativeName(sans),
            critical=False,
        )
    csr = builder.sign(key, hashes.SHA256())
    return csr.public_bytes(serialization.Encoding.PEM), key


def make_csr_with_duplicate_san(dns_name: str = "dup.example.com") -> bytes:
    """A CSR carrying two subjectAltName extensions.

    The builder refuses duplicates, so an issuerAltName extension is
    added and its OID rewritten to subjectAltName in the DER.  The
    signature no longer verifies, which loading does not check.
    """
    names = [x509.DNSName(dns_name)]
    csr = (
        x509.CertificateSigningRequestBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, dns_name)]))
        .add_extension(x509.SubjectAlternativeName(names), critical=False)
        .add_extension(x509.IssuerAlternativeName(names), critical=False)
        .sign(make_key(), hashes.SHA256())
    )
    der = csr.public_bytes(serialization.Encoding.DER)
    ian_oid = b"\x06\x03\x55\x1d\x12"
    san_oid = b"\x06\x03\x55\x1d\x11"
    assert der.count(ian_oid) == 1
    der = der.replace(ian_oid, san_oid)
    return (
        b"-----BEGIN CERTIFICATE REQUEST-----\n"
        + base64.encodebytes(der)
        + b"-----END CERTIFICATE REQUEST-----\n"
    )


def make_ca(common_name: str = "Test Root CA") -> tuple[x509.Certificate, ec.EllipticCurvePrivateKey]:
    key = make_key()
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(UTC)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=1))
        .not_valid_after(now + timedelta(days=3650))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )
    return cert, key


def pem(cert: x509.Certificate) -> str:
    return cert.public_bytes(serialization.Encoding.PEM).decode("ascii")


def issue_leaf(
    csr_pem: str | bytes,
    ca_cert: x509.Certificate,
    ca_key: ec.EllipticCurvePrivateKey,
    ttl: timedelta = timedelta(days=90),
) -> x509.Certificate:
    """Sign *csr_pem* the way a PKI backend would."""
    if isinstance(csr_pem, str):
        csr_pem = csr_pem.encode("ascii")
    csr = x509.load_pem_x509_csr(csr_pem)
    now = datetime.now(UTC)
    return (
        x509.CertificateBuilder()
        .subject_name(csr.subject)
        .issuer_name(ca_cert.subject)
        .public_key(csr.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=1))
        .not_valid_after(now + ttl)
        .sign(ca_key, hashes.SHA256())
    )


def public_key_der(key_holder) -> bytes:
    return key_holder.public_key().public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def token_auth(name: str = "vault-token", key: str = "token") -> TokenAuth:
    return TokenAuth(secret_ref=SecretRef(namespace="default", name=name, key=key))


def approle_auth(
    role_id: str = "role-123",
    name: str = "vault-approle",
    key: str = "secretId",
    path: str = "approle",
) -> AppRoleAuth:
    return AppRoleAuth(
        role_id=role_id,
        secret_ref=SecretRef(namespace="default", name=name, key=key),
        path=path,
    )


def make_issuer_settings(**overrides) -> IssuerSettings:
    """Build an IssuerSettings with sensible defaults."""
    defaults = {
        "name": "test-issuer",
        "namespace": "default",
        "server": SERVER,
        "path": SIGN_PATH,
        "ca_bundle": None,
        "auth": token_auth(),
        "vault_namespace": None,
        "timeout_seconds": 5.0,
    }
    defaults.update(overrides)
    return IssuerSettings(**defaults)


# ---------------------------------------------------------------------------
# Fake Vault
# ---------------------------------------------------------------------------


class RecordedRequest:
    def __init__(self, req, timeout) -> None:
        parts = urlsplit(req.full_url)
        self.method = req.get_method()
        self.url = req.full_url
        self.path = parts.path
        self.query = {k: v[0] for k, v in parse_qs(parts.query).items()}
        self.headers = dict(req.header_items())
        self.payload = json.loads(req.data) if req.data else None
        self.timeout = timeout

    @property
    def token(self) -> str | None:
        return self.headers.get("X-vault-token")


class FakeVault:
    """Answers urllib requests like a Vault server with a PKI mount.

    Install with :meth:`patched`, which replaces
    ``urllib.request.build_opener``.  Every request is recorded in
    :attr:`requests`.
    """

    def __init__(
        self,
        *,
        token: str = TOKEN,
        sign_path: str = SIGN_PATH,
        include_ca: bool = True,
    ) -> None:
        self.token = token
        self.sign_path = "/v1/" + sign_path
        self.include_ca = include_ca
        self.ca_cert, self.ca_key = make_ca()
        self.requests: list[RecordedRequest] = []
        self._overrides: dict[tuple[str, str], object] = {}

    @property
    def ca_pem(self) -> str:
        return pem(self.ca_cert)

    def route(self, method: str, path: str, status: int = 200, body=None) -> None:
        """Override the answer for ``method path``.

        *body* may be a dict (sent as JSON), bytes, or an exception
        instance to raise instead of answering.
        """
        self._overrides[(method, path)] = (status, body)

    # -- default handlers ---------------------------------------------------

    def _login(self, rec: RecordedRequest):
        return 200, {
            "auth": {
                "client_token": self.token,
                "lease_duration": 3600,
                "renewable": True,
            },
        }

    def _sign(self, rec: RecordedRequest):
        if rec.token != self.token:
            return 403, {"errors": ["permission denied"]}
        leaf = issue_leaf(rec.payload["csr"], self.ca_cert, self.ca_key)
        data = {
            "certificate": pem(leaf),
            "serial_number": format(leaf.serial_number, "x"),
            "expiration": int(leaf.not_valid_after_utc.timestamp()),
        }
        if self.include_ca:
            data["issuing_ca"] = self.ca_pem
            data["ca_chain"] = [self.ca_pem]
        return 200, {"data": data, "warnings": None}

    def _health(self, rec: RecordedRequest):
        return 200, {
            "initialized": True,
            "sealed": False,
            "standby": False,
            "version": "1.15.2",
            "cluster_name": "vault-cluster-test",
        }

    # -- dispatch -----------------------------------------------------------

    def open(self, req, timeout=None):
        rec = RecordedRequest(req, timeout)
        self.requests.append(rec)

        key = (rec.method, rec.path)
        if key in self._overrides:
            status, body = self._overrides[key]
        elif rec.method == "POST" and rec.path.startswith("/v1/auth/") and rec.path.endswith("/login"):
            status, body = self._login(rec)
        elif rec.method == "POST" and rec.path == self.sign_path:
            status, body = self._sign(rec)
        elif rec.method == "GET" and rec.path == "/v1/sys/health":
            status, body = self._health(rec)
        else:
            status, body = 404, {"errors": []}

        if isinstance(body, BaseException):
            raise body
        if isinstance(body, (dict, list)):
            raw = json.dumps(body).encode("utf-8")
        else:
            raw = body or b""

        if status >= 400:
            raise urllib.error.HTTPError(
                url=rec.url,
                code=status,
                msg=f"HTTP {status}",
                hdrs=None,
                fp=BytesIO(raw),
            )

        resp = MagicMock()
        resp.status = status
        resp.read.return_value = raw
        return resp

    @contextlib.contextmanager
    def patched(self):
        with patch("urllib.request.build_opener") as mock_opener_fn:
            opener = MagicMock()
            opener.open.side_effect = self.open
            mock_opener_fn.return_value = opener
            yield self
