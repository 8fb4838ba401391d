"""Root conftest for the vault-issuer test suite."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` and the shared test helpers importable without installing
# ---------------------------------------------------------------------------
_HERE = Path(__file__).resolve().parent
_SRC = str(_HERE.parent / "src")
for _path in (_SRC, str(_HERE)):
    if _path not in sys.path:
        sys.path.insert(0, _path)

from vault_fakes import FakeVault, TOKEN  # noqa: E402

from vaultissuer.secrets.memory import MemorySecretStore  # noqa: E402


@pytest.fixture(autouse=True)
def _restore_package_logger():
    """Undo ``configure_logging`` so caplog keeps seeing package records."""
    logger = logging.getLogger("vaultissuer")
    saved = (logger.level, list(logger.handlers), logger.propagate)
    yield
    logger.setLevel(saved[0])
    logger.handlers[:] = saved[1]
    logger.propagate = saved[2]


@pytest.fixture()
def fake_vault() -> FakeVault:
    """A fake Vault with a PKI mount, installed over urllib for the test."""
    vault = FakeVault()
    with vault.patched():
        yield vault


@pytest.fixture()
def secret_store() -> MemorySecretStore:
    """A store holding a static token and an AppRole secret id."""
    store = MemorySecretStore()
    store.put("default", "vault-token", {"token": f"  {TOKEN}\n"})
    store.put("default", "vault-approle", {"secretId": " secret-456 \n"})
    return store


# ---------------------------------------------------------------------------
# Minimal config data shared by multiple test modules
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_config_data() -> dict:
    """Return a dict containing the minimum required config fields."""
    return {
        "vault": {
            "server": "https://vault.example.com:8200",
            "path": "pki/sign/example-dot-com",
            "auth": {"token_secret_ref": {"name": "vault-token"}},
        },
    }


@pytest.fixture()
def tmp_config_file(tmp_path: Path, minimal_config_data: dict) -> Path:
    """Write *minimal_config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(minimal_config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg
