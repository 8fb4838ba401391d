"""Signing request construction.

Maps a PEM CSR and a requested duration onto the parameter set of
Vault's ``pki/sign`` endpoint::

    POST /v1/{mount_path}
    {
        "common_name": "example.com",
        "alt_names": "example.com,www.example.com",
        "ip_sans": "10.0.0.1",
        "ttl": "2160h0m0s",
        "csr": "-----BEGIN CERTIFICATE REQUEST-----\\n...",
        "exclude_cn_from_sans": "true"
    }

Durations are rendered in Go's duration syntax, which is what Vault
parses for ``ttl``.
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from cryptography import x509
from cryptography.x509.oid import NameOID

from vaultissuer.errors import CSRDecodeError

_NS_PER_US = 1_000
_NS_PER_MS = 1_000_000
_NS_PER_S = 1_000_000_000

_UNIT_NS = {
    "ns": Decimal(1),
    "us": Decimal(_NS_PER_US),
    "µs": Decimal(_NS_PER_US),  # U+00B5 micro sign
    "μs": Decimal(_NS_PER_US),  # U+03BC greek mu
    "ms": Decimal(_NS_PER_MS),
    "s": Decimal(_NS_PER_S),
    "m": Decimal(60 * _NS_PER_S),
    "h": Decimal(3600 * _NS_PER_S),
}

_COMPONENT_RE = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


# ---------------------------------------------------------------------------
# Durations
# ---------------------------------------------------------------------------


def _frac(value: int, digits: int) -> str:
    text = f"{value:0{digits}d}".rstrip("0")
    return f".{text}" if text else ""


def format_duration(duration: timedelta) -> str:
    """Render *duration* the way Go's ``time.Duration.String`` does.

    >>> format_duration(timedelta(days=90))
    '2160h0m0s'
    >>> format_duration(timedelta(seconds=1.5))
    '1.5s'
    """
    ns = (duration // timedelta(microseconds=1)) * _NS_PER_US
    sign = "-" if ns < 0 else ""
    u = abs(ns)

    if u == 0:
        return "0s"
    if u < _NS_PER_US:
        return f"{sign}{u}ns"
    if u < _NS_PER_MS:
        return f"{sign}{u // _NS_PER_US}{_frac(u % _NS_PER_US, 3)}µs"
    if u < _NS_PER_S:
        return f"{sign}{u // _NS_PER_MS}{_frac(u % _NS_PER_MS, 6)}ms"

    seconds, frac_ns = divmod(u, _NS_PER_S)
    out = f"{seconds % 60}{_frac(frac_ns, 9)}s"
    minutes = seconds // 60
    if minutes:
        out = f"{minutes % 60}m{out}"
        hours = minutes // 60
        if hours:
            out = f"{hours}h{out}"
    return sign + out


def parse_duration(text: str) -> timedelta:
    """Parse a Go duration string such as ``"2160h"`` or ``"1h30m"``.

    Sub-microsecond precision is truncated.

    Raises
    ------
    ValueError
        If *text* is not a valid duration.

    """
    s = text.strip()
    sign = 1
    if s[:1] in ("+", "-"):
        sign = -1 if s[0] == "-" else 1
        s = s[1:]
    if s == "0":
        return timedelta(0)
    if not s:
        msg = f"invalid duration {text!r}"
        raise ValueError(msg)

    total = Decimal(0)
    pos = 0
    for match in _COMPONENT_RE.finditer(s):
        if match.start() != pos:
            break
        total += Decimal(match.group(1)) * _UNIT_NS[match.group(2)]
        pos = match.end()
    if pos != len(s):
        msg = f"invalid duration {text!r}"
        raise ValueError(msg)

    return sign * timedelta(microseconds=int(total / _NS_PER_US))


# ---------------------------------------------------------------------------
# CSR → parameters
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SigningRequest:
    """Parameters for one signing call, plus the decoded CSR."""

    parameters: dict[str, str]
    csr: x509.CertificateSigningRequest


def decode_csr(csr_pem: bytes | str) -> x509.CertificateSigningRequest:
    """Decode a PEM CSR, raising :class:`CSRDecodeError` on bad input."""
    if isinstance(csr_pem, str):
        try:
            csr_pem = csr_pem.encode("utf-8")
        except UnicodeEncodeError as exc:
            msg = f"failed to decode CSR for signing: {exc}"
            raise CSRDecodeError(msg) from exc
    if not isinstance(csr_pem, (bytes, bytearray)) or not csr_pem.strip():
        msg = "failed to decode CSR for signing: empty or non-bytes input"
        raise CSRDecodeError(msg)
    try:
        return x509.load_pem_x509_csr(bytes(csr_pem))
    except (ValueError, x509.DuplicateExtension) as exc:
        msg = f"failed to decode CSR for signing: {exc}"
        raise CSRDecodeError(msg) from exc


def _csr_text(csr_pem: bytes | str) -> str:
    if isinstance(csr_pem, str):
        return csr_pem
    try:
        return bytes(csr_pem).decode("utf-8")
    except UnicodeDecodeError as exc:
        msg = f"failed to decode CSR for signing: not UTF-8 text: {exc}"
        raise CSRDecodeError(msg) from exc


def _common_name(csr: x509.CertificateSigningRequest) -> str:
    # The last CN attribute wins when a subject carries several.
    attrs = csr.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attrs:
        return ""
    value = attrs[-1].value
    return value.decode("utf-8") if isinstance(value, bytes) else value


def _subject_alt_names(
    csr: x509.CertificateSigningRequest,
) -> tuple[list[str], list[str]]:
    try:
        ext = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return [], []
    except (
        ValueError,
        x509.DuplicateExtension,
        x509.UnsupportedGeneralNameType,
    ) as exc:
        msg = f"failed to decode CSR for signing: malformed extensions: {exc}"
        raise CSRDecodeError(msg) from exc

    san = ext.value
    dns_names = list(san.get_values_for_type(x509.DNSName))
    ips = [str(ip) for ip in san.get_values_for_type(x509.IPAddress)]
    return dns_names, ips


def build_signing_request(
    csr_pem: bytes | str,
    duration: timedelta,
) -> SigningRequest:
    """Decode *csr_pem* and build the ``pki/sign`` parameter mapping.

    Raises
    ------
    CSRDecodeError
        If the CSR cannot be decoded.

    """
    csr = decode_csr(csr_pem)
    dns_names, ips = _subject_alt_names(csr)
    pem_text = _csr_text(csr_pem)

    parameters = {
        "common_name": _common_name(csr),
        "alt_names": ",".join(dns_names),
        "ip_sans": ",".join(ips),
        "ttl": format_duration(duration),
        "csr": pem_text,
        "exclude_cn_from_sans": "true",
    }
    return SigningRequest(parameters=parameters, csr=csr)


def sign_path(mount_path: str) -> str:
    """Return ``/v1/{mount_path}`` with redundant slashes removed."""
    return posixpath.normpath(f"/v1/{mount_path}")
