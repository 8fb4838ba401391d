"""Allow ``python -m vaultissuer``."""

from vaultissuer.cli.main import main

main()
