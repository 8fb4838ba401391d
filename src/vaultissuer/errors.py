"""Error taxonomy for the Vault issuer.

Every failure on the path from issuer configuration to a signed
certificate chain raises a subclass of :class:`IssuerError`.  The
subclasses separate configuration problems (fix the issuer, do not
retry) from transient ones (credential not created yet, backend
unreachable) so the calling controller can decide what to do.

Nothing in this package retries or logs these errors; they always
propagate to the caller.
"""

from __future__ import annotations


class IssuerError(Exception):
    """Base class for all issuer failures.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    retryable:
        Whether the failure is transient and re-invoking the operation
        may succeed.

    """

    operation = "issuer"

    def __init__(self, detail: str, *, retryable: bool = False) -> None:
        self.detail = detail
        self.retryable = retryable
        super().__init__(detail)

    def __str__(self) -> str:
        return f"{self.operation}: {self.detail}"


class ConfigError(IssuerError):
    """The issuer configuration is malformed or incomplete."""

    operation = "configure"


class SecretLookupError(IssuerError):
    """Credential material is missing from the secret store.

    Usually transient: the referenced secret has not been created yet.
    """

    operation = "secret lookup"

    def __init__(self, detail: str, *, retryable: bool = True) -> None:
        super().__init__(detail, retryable=retryable)


class AuthRequestError(IssuerError):
    """The login request failed in transport or was refused."""

    operation = "login"


class AuthDecodeError(IssuerError):
    """The login response body could not be decoded."""

    operation = "login"


class EmptyTokenError(IssuerError):
    """Authentication yielded an empty session token."""

    operation = "login"


class CSRDecodeError(IssuerError):
    """The caller supplied a CSR that cannot be decoded."""

    operation = "decode csr"


class SignRequestError(IssuerError):
    """The signing request failed in transport or was refused.

    Parameters
    ----------
    status:
        HTTP status returned by the backend, or ``None`` when the
        request never got a response.

    """

    operation = "sign"

    def __init__(
        self,
        detail: str,
        *,
        retryable: bool = False,
        status: int | None = None,
    ) -> None:
        self.status = status
        super().__init__(detail, retryable=retryable)

    @property
    def token_rejected(self) -> bool:
        """True when the backend refused the session token.

        The session is never refreshed in place; callers seeing this
        should build a new client.
        """
        return self.status == 403


class ResponseDecodeError(IssuerError):
    """The signing response body is not a JSON secret envelope."""

    operation = "decode response"


class BundleParseError(IssuerError):
    """The signing response does not hold a parsable certificate bundle."""

    operation = "parse bundle"


class HealthCheckError(IssuerError):
    """The backend health endpoint could not be queried or decoded."""

    operation = "health"


class TransportError(IssuerError):
    """A request never received an HTTP response.

    Raised by the transport only; callers wrap it in the error type of
    their operation.
    """

    operation = "transport"

    def __init__(self, detail: str, *, retryable: bool = True) -> None:
        super().__init__(detail, retryable=retryable)
