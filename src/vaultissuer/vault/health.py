"""Backend health capability.

The controller only needs to know whether Vault is up, unsealed and
initialised, so the client exposes that one narrow operation instead of
the whole underlying transport.

Vault answers ``GET /v1/sys/health`` with a status code that encodes
its state (200 active, 429 standby, 472/473 performance standby, 501
uninitialised, 503 sealed).  The query parameters below make every one
of those states return 200 with the same JSON body, so a non-2xx answer
means the endpoint itself failed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from vaultissuer.errors import HealthCheckError, TransportError

if TYPE_CHECKING:
    from vaultissuer.vault.transport import Transport

HEALTH_PATH = "/v1/sys/health"
HEALTH_QUERY = {
    "standbyok": "true",
    "perfstandbyok": "true",
    "sealedcode": "200",
    "uninitcode": "200",
}


@dataclass(frozen=True)
class HealthStatus:
    """Decoded ``sys/health`` response."""

    initialized: bool
    sealed: bool
    standby: bool
    version: str
    cluster_name: str

    @property
    def ready(self) -> bool:
        """True when Vault can serve signing requests."""
        return self.initialized and not self.sealed


@runtime_checkable
class HealthChecker(Protocol):
    def health(self) -> HealthStatus: ...


def check_health(transport: Transport) -> HealthStatus:
    """Query ``sys/health``; unauthenticated by design of the endpoint.

    Raises
    ------
    HealthCheckError
        If the endpoint is unreachable or returns an unusable body.

    """
    try:
        resp = transport.get(HEALTH_PATH, query=HEALTH_QUERY)
    except TransportError as exc:
        raise HealthCheckError(exc.detail, retryable=True) from exc

    if not resp.ok:
        msg = f"HTTP {resp.status}: {resp.error_text()}"
        raise HealthCheckError(msg, retryable=resp.status >= 500)

    try:
        data = resp.json()
    except ValueError as exc:
        msg = f"invalid JSON from {HEALTH_PATH}: {exc}"
        raise HealthCheckError(msg) from exc
    if not isinstance(data, dict):
        msg = f"invalid JSON from {HEALTH_PATH}: expected an object"
        raise HealthCheckError(msg)

    return HealthStatus(
        initialized=bool(data.get("initialized", False)),
        sealed=bool(data.get("sealed", True)),
        standby=bool(data.get("standby", False)),
        version=str(data.get("version", "")),
        cluster_name=str(data.get("cluster_name", "")),
    )
