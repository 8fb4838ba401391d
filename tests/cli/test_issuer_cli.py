"""Tests for the vault-issuer command line."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from cryptography import x509

from vault_fakes import SERVER, SIGN_PATH, TOKEN, make_csr
from vaultissuer.cli.main import _build_parser, main
from vaultissuer.errors import SignRequestError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def cli_config(tmp_path) -> Path:
    """A config file using the in-memory secret store."""
    data = {
        "issuer": {"name": "cli-issuer"},
        "vault": {
            "server": SERVER,
            "path": SIGN_PATH,
            "auth": {"token_secret_ref": {"name": "vault-token"}},
        },
        "secrets": {
            "backend": "memory",
            "options": {"secrets": {"default/vault-token": {"token": TOKEN}}},
        },
        "logging": {"level": "WARNING", "format": "text"},
    }
    cfg = tmp_path / "config.yaml"
    cfg.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return cfg


@pytest.fixture()
def csr_file(tmp_path) -> Path:
    csr_pem, _ = make_csr()
    path = tmp_path / "request.pem"
    path.write_bytes(csr_pem)
    return path


def _exit_code(argv) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class TestParser:
    def test_sign_defaults(self):
        args = _build_parser().parse_args(["-c", "x.yaml", "sign", "--csr", "r.pem"])

        assert args.command == "sign"
        assert args.duration == "2160h"
        assert args.out is None
        assert args.ca_out is None
        assert args.debug is False

    def test_config_required(self):
        with pytest.raises(SystemExit) as exc_info:
            _build_parser().parse_args(["health"])

        assert exc_info.value.code == 2

    def test_sign_requires_csr(self):
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["-c", "x.yaml", "sign"])

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["-c", "x.yaml", "--version"])

        assert exc_info.value.code == 0
        assert "vault-issuer 1.0.0" in capsys.readouterr().out


# ---------------------------------------------------------------------------
# Config handling
# ---------------------------------------------------------------------------


class TestConfigHandling:
    def test_missing_config_file(self, tmp_path, capsys):
        assert _exit_code(["-c", str(tmp_path / "absent.yaml"), "health"]) == 1
        assert "configuration file not found" in capsys.readouterr().err

    def test_invalid_config(self, tmp_path, capsys):
        cfg = tmp_path / "config.yaml"
        cfg.write_text("vault:\n  server: nope\n  path: pki/sign/x\n", encoding="utf-8")

        assert _exit_code(["-c", str(cfg), "health"]) == 1
        assert "Configuration validation failed" in capsys.readouterr().err

    def test_validate_only(self, cli_config, capsys):
        assert _exit_code(["-c", str(cli_config), "--validate-only"]) == 0

        out = capsys.readouterr().out
        assert "cli-issuer" in out
        assert "auth:       token" in out
        assert "secrets:    memory" in out

    def test_command_required(self, cli_config, capsys):
        assert _exit_code(["-c", str(cli_config)]) == 1
        assert "a command is required" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# sign
# ---------------------------------------------------------------------------


class TestSignCommand:
    def test_chain_to_stdout(self, fake_vault, cli_config, csr_file, capsys):
        main(["-c", str(cli_config), "sign", "--csr", str(csr_file)])

        out = capsys.readouterr().out
        certs = x509.load_pem_x509_certificates(out.encode("ascii"))
        assert len(certs) == 2
        assert fake_vault.requests[0].payload["ttl"] == "2160h0m0s"

    def test_chain_and_ca_to_files(self, fake_vault, cli_config, csr_file, tmp_path):
        out = tmp_path / "chain.pem"
        ca_out = tmp_path / "ca.pem"

        main(
            [
                "-c",
                str(cli_config),
                "sign",
                "--csr",
                str(csr_file),
                "--duration",
                "24h",
                "--out",
                str(out),
                "--ca-out",
                str(ca_out),
            ],
        )

        assert len(x509.load_pem_x509_certificates(out.read_bytes())) == 2
        assert ca_out.read_text(encoding="ascii") == fake_vault.ca_pem
        assert fake_vault.requests[0].payload["ttl"] == "24h0m0s"

    def test_no_ca_skips_ca_file(self, fake_vault, cli_config, csr_file, tmp_path):
        fake_vault.include_ca = False
        out = tmp_path / "chain.pem"
        ca_out = tmp_path / "ca.pem"

        main(
            [
                "-c",
                str(cli_config),
                "sign",
                "--csr",
                str(csr_file),
                "--out",
                str(out),
                "--ca-out",
                str(ca_out),
            ],
        )

        assert out.exists()
        assert not ca_out.exists()

    def test_bad_duration(self, fake_vault, cli_config, csr_file, capsys):
        code = _exit_code(["-c", str(cli_config), "sign", "--csr", str(csr_file), "--duration", "90d"])

        assert code == 1
        assert "invalid duration" in capsys.readouterr().err
        assert fake_vault.requests == []

    def test_unreadable_csr(self, fake_vault, cli_config, tmp_path, capsys):
        code = _exit_code(["-c", str(cli_config), "sign", "--csr", str(tmp_path / "none.pem")])

        assert code == 1
        assert "cannot read CSR" in capsys.readouterr().err

    def test_backend_refusal(self, fake_vault, cli_config, csr_file, capsys):
        fake_vault.route("POST", f"/v1/{SIGN_PATH}", 403, {"errors": ["permission denied"]})

        assert _exit_code(["-c", str(cli_config), "sign", "--csr", str(csr_file)]) == 1
        assert "sign: failed to sign certificate by vault" in capsys.readouterr().err

    def test_debug_reraises(self, fake_vault, cli_config, csr_file):
        fake_vault.route("POST", f"/v1/{SIGN_PATH}", 403, {"errors": ["permission denied"]})

        with pytest.raises(SignRequestError):
            main(["-c", str(cli_config), "--debug", "sign", "--csr", str(csr_file)])


# ---------------------------------------------------------------------------
# health
# ---------------------------------------------------------------------------


class TestHealthCommand:
    def test_ready(self, fake_vault, cli_config, capsys):
        main(["-c", str(cli_config), "health"])

        out = capsys.readouterr().out
        assert "sealed:       False" in out
        assert "version:      1.15.2" in out

    def test_sealed_exits_2(self, fake_vault, cli_config, capsys):
        fake_vault.route(
            "GET",
            "/v1/sys/health",
            200,
            {"initialized": True, "sealed": True},
        )

        assert _exit_code(["-c", str(cli_config), "health"]) == 2
        assert "sealed:       True" in capsys.readouterr().out
