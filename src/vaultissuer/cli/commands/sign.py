"""``sign`` subcommand."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)


def _read_csr(source: str) -> bytes:
    if source == "-":
        return sys.stdin.buffer.read()
    return Path(source).read_bytes()


def run_sign(config, args) -> None:
    """Sign the CSR named by ``--csr`` and write the chain."""
    from vaultissuer.errors import ConfigError
    from vaultissuer.vault import VaultClient
    from vaultissuer.vault.request import parse_duration

    try:
        duration = parse_duration(args.duration)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    try:
        csr_pem = _read_csr(args.csr)
    except OSError as exc:
        msg = f"cannot read CSR {args.csr}: {exc.strerror}"
        raise ConfigError(msg) from exc

    client = VaultClient.from_settings(config.settings)
    chain_pem, ca_pem = client.sign(csr_pem, duration)

    if args.out:
        Path(args.out).write_bytes(chain_pem)
    else:
        sys.stdout.write(chain_pem.decode("ascii"))

    if args.ca_out:
        if ca_pem is None:
            log.warning("Vault returned no CA chain; %s not written", args.ca_out)
        else:
            Path(args.ca_out).write_bytes(ca_pem)
