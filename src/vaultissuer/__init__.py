"""vault-issuer: sign certificate requests through a Vault PKI backend."""

__version__ = "1.0.0"
