"""Installation-configuration lookup for the TLS cipher-suite environment variable."""

from __future__ import annotations

from typing import Any

from kubeconverge.client.base import ClusterClient
from kubeconverge.errors import NotFoundError
from kubeconverge.models.config import InstallationConfig
from kubeconverge.models.resources import Manifest, ResourceIdentity
from kubeconverge.observability.logging import get_logger

_log = get_logger("client.installation")


def format_cipher_suites(installation: Manifest) -> str:
    """Comma-join ``spec.tlsCipherSuites[*].name``; "" when none are configured."""
    suites: list[Any] = (installation.get("spec") or {}).get("tlsCipherSuites") or []
    names = [str(s.get("name", "")) for s in suites if isinstance(s, dict) and s.get("name")]
    return ",".join(names)


class InstallationLookup:
    """Reads the cluster-wide installation resource on demand.

    A missing installation means "no cipher suites configured", not an
    error. Any other API failure propagates to the handler.
    """

    def __init__(self, client: ClusterClient, config: InstallationConfig | None = None) -> None:
        cfg = config or InstallationConfig()
        self._client = client
        self._identity = ResourceIdentity(api_version=cfg.api_version, kind=cfg.kind, namespace="", name=cfg.name)

    @property
    def identity(self) -> ResourceIdentity:
        return self._identity

    async def tls_cipher_suites(self) -> str:
        try:
            installation = await self._client.get(self._identity)
        except NotFoundError:
            _log.debug("installation_not_found", object=str(self._identity))
            return ""
        return format_cipher_suites(installation)
