"""``health`` subcommand."""

from __future__ import annotations

import sys


def run_health(config, args) -> None:  # noqa: ARG001
    """Print the Vault health status; exit 2 when Vault is not ready."""
    from vaultissuer.vault import VaultClient

    client = VaultClient.from_settings(config.settings)
    status = client.health()

    print(f"server:       {client.settings.server}")  # noqa: T201
    print(f"initialized:  {status.initialized}")  # noqa: T201
    print(f"sealed:       {status.sealed}")  # noqa: T201
    print(f"standby:      {status.standby}")  # noqa: T201
    print(f"version:      {status.version or '-'}")  # noqa: T201
    print(f"cluster:      {status.cluster_name or '-'}")  # noqa: T201

    if not status.ready:
        sys.exit(2)
