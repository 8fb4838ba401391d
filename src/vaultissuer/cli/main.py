"""vault-issuer command-line entry point.

Usage::

    vault-issuer -c /etc/vault-issuer/config.yaml --validate-only
    vault-issuer -c config.yaml sign --csr request.pem --duration 2160h --out chain.pem
    vault-issuer -c config.yaml health
    python -m vaultissuer -c config.yaml health
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)


def _get_version() -> str:
    from vaultissuer import __version__

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vault-issuer",
        description="Sign certificate requests through a Vault PKI backend",
    )
    parser.add_argument(
        "-c",
        "--config",
        required=True,
        metavar="PATH",
        help="Path to the configuration file (YAML or JSON).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration file and exit.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # sign
    sign_parser = subparsers.add_parser("sign", help="Sign a CSR")
    sign_parser.add_argument(
        "--csr",
        required=True,
        metavar="FILE",
        help="PEM-encoded certificate signing request ('-' for stdin).",
    )
    sign_parser.add_argument(
        "--duration",
        default="2160h",
        help="Requested validity, Go duration syntax (default: 2160h).",
    )
    sign_parser.add_argument(
        "--out",
        metavar="FILE",
        help="Write the certificate chain here instead of stdout.",
    )
    sign_parser.add_argument(
        "--ca-out",
        metavar="FILE",
        help="Write the issuing CA certificate here.",
    )

    # health
    subparsers.add_parser("health", help="Query the Vault health endpoint")

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    print(f"vault-issuer: error: {message}", file=sys.stderr)  # noqa: T201


def _print_settings_summary(config) -> None:
    issuer = config.settings.issuer
    method = issuer.auth.method if issuer.auth is not None else "none"
    print(f"issuer:     {issuer.name} (namespace {issuer.namespace})")  # noqa: T201
    print(f"server:     {issuer.server}")  # noqa: T201
    print(f"path:       {issuer.path}")  # noqa: T201
    print(f"auth:       {method}")  # noqa: T201
    print(f"ca bundle:  {'custom' if issuer.ca_bundle else 'system default'}")  # noqa: T201
    print(f"secrets:    {config.settings.secrets.backend}")  # noqa: T201


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, runs a command."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # -- resolve config path ---
    config_path = Path(args.config)
    if not config_path.is_file():
        _print_error(f"configuration file not found: {config_path}")
        sys.exit(1)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # -- load & validate config ---
    from vaultissuer.errors import IssuerError

    try:
        from vaultissuer.config import IssuerConfig

        config = IssuerConfig(config_file=config_path)
    except IssuerError as exc:
        _print_error(str(exc))
        sys.exit(1)

    # -- replace bootstrap logging with structured logging ---
    from vaultissuer.logging import configure_logging

    configure_logging(config.settings.logging)

    if args.validate_only:
        _print_settings_summary(config)
        sys.exit(0)

    command = args.command
    if command is None:
        parser.print_usage(sys.stderr)
        _print_error("a command is required (sign, health)")
        sys.exit(1)

    try:
        if command == "sign":
            from vaultissuer.cli.commands.sign import run_sign

            run_sign(config, args)
        elif command == "health":
            from vaultissuer.cli.commands.health import run_health

            run_health(config, args)
    except IssuerError as exc:
        if args.debug:
            raise
        log.debug("Command %s failed", command, exc_info=True)
        _print_error(str(exc))
        sys.exit(1)
