"""Decoding of Vault ``pki/sign`` responses.

Response body (JSON, HTTP 200)::

    {
        "request_id": "...",
        "lease_duration": 0,
        "data": {
            "certificate": "-----BEGIN CERTIFICATE-----\\n...",
            "issuing_ca": "-----BEGIN CERTIFICATE-----\\n...",
            "ca_chain": ["-----BEGIN CERTIFICATE-----\\n...", ...],
            "serial_number": "39:dd:2e:...",
            "expiration": 1700000000
        },
        "warnings": null
    }

Some backends omit ``ca_chain`` or send it empty; when ``issuing_ca`` is
present the chain is then that single certificate.  A missing chain is
not an error.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from cryptography import x509

from vaultissuer.errors import BundleParseError, ResponseDecodeError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CertificateBundle:
    """The issued leaf and its issuing chain, immediate issuer first.

    Attributes
    ----------
    certificate:
        PEM-encoded leaf certificate.
    ca_chain:
        PEM-encoded CA certificates; ``ca_chain[0]`` is the issuer of
        the leaf.
    serial_number:
        Serial as reported by the backend (colon-separated hex), or
        derived from the leaf when the backend omits it.

    """

    certificate: str
    ca_chain: tuple[str, ...]
    serial_number: str

    @property
    def issuing_ca(self) -> str | None:
        return self.ca_chain[0] if self.ca_chain else None

    def chain_pem(self) -> bytes:
        """Leaf followed by every chain entry, one PEM block per line group."""
        blocks = [self.certificate.strip(), *(c.strip() for c in self.ca_chain)]
        return ("\n".join(blocks) + "\n").encode("ascii")

    def ca_pem(self) -> bytes | None:
        """First CA chain entry, or ``None`` when the chain is empty."""
        issuer = self.issuing_ca
        return issuer.encode("ascii") if issuer is not None else None

    def leaf(self) -> x509.Certificate:
        return x509.load_pem_x509_certificate(self.certificate.encode("ascii"))


def _parse_pem_cert(pem: Any, field: str) -> x509.Certificate:  # noqa: ANN401
    if not isinstance(pem, str) or not pem.strip():
        msg = f"'{field}' is missing or not a PEM string"
        raise BundleParseError(msg)
    try:
        return x509.load_pem_x509_certificate(pem.encode("ascii"))
    except (ValueError, UnicodeEncodeError) as exc:
        msg = f"'{field}' is not a valid PEM certificate: {exc}"
        raise BundleParseError(msg) from exc


def _format_serial(serial: int) -> str:
    raw = format(serial, "x")
    if len(raw) % 2:
        raw = "0" + raw
    return ":".join(raw[i : i + 2] for i in range(0, len(raw), 2))


def parse_pki_data(data: Any) -> CertificateBundle:  # noqa: ANN401
    """Build a :class:`CertificateBundle` from the envelope's ``data``.

    Raises
    ------
    BundleParseError
        If the issued certificate or any chain entry cannot be parsed.

    """
    if not isinstance(data, dict):
        msg = "response has no 'data' object"
        raise BundleParseError(msg)

    certificate = data.get("certificate")
    leaf = _parse_pem_cert(certificate, "certificate")

    issuing_ca = data.get("issuing_ca")
    if issuing_ca:
        _parse_pem_cert(issuing_ca, "issuing_ca")

    raw_chain = data.get("ca_chain")
    if raw_chain is None:
        raw_chain = []
    if not isinstance(raw_chain, list):
        msg = "'ca_chain' is not a list"
        raise BundleParseError(msg)
    if not raw_chain and issuing_ca:
        raw_chain = [issuing_ca]

    chain = []
    for idx, entry in enumerate(raw_chain):
        _parse_pem_cert(entry, f"ca_chain[{idx}]")
        chain.append(entry)

    serial = data.get("serial_number")
    if not isinstance(serial, str) or not serial:
        serial = _format_serial(leaf.serial_number)

    return CertificateBundle(
        certificate=certificate,
        ca_chain=tuple(chain),
        serial_number=serial,
    )


def decode_sign_response(body: bytes) -> CertificateBundle:
    """Decode a raw ``pki/sign`` response body.

    Raises
    ------
    ResponseDecodeError
        If *body* is not a JSON object.
    BundleParseError
        If the PKI fields cannot be parsed.

    """
    try:
        envelope = json.loads(body.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        msg = f"Failed to decode response returned by vault: {exc}"
        raise ResponseDecodeError(msg) from exc
    if not isinstance(envelope, dict):
        msg = "Failed to decode response returned by vault: expected an object"
        raise ResponseDecodeError(msg)

    bundle = parse_pki_data(envelope.get("data"))

    warnings = envelope.get("warnings")
    if isinstance(warnings, list):
        for warning in warnings:
            log.warning("Vault warning while signing: %s", warning)

    return bundle
