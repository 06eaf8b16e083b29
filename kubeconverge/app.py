"""Runtime bootstrap for kubeconverge.

Wires the process-wide pieces in dependency order:
config → logging → K8s client → dedup cache → installation lookup.

Controllers embed a ``ConvergeRuntime`` and ask it for one
``ComponentHandler`` per owning custom resource. Every handler shares the
same cache, so a write made through one is never repeated through another.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from kubeconverge.cache import DeduplicationCache
from kubeconverge.client import ClusterClient, InstallationLookup
from kubeconverge.config import load_config
from kubeconverge.engine import ComponentHandler
from kubeconverge.models.config import KubeConvergeConfig
from kubeconverge.models.resources import Manifest
from kubeconverge.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog


class _ComponentError(Exception):
    """Raised when a mandatory runtime component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


async def connect(config: KubeConvergeConfig) -> ClusterClient:
    """Build a KubernetesClusterClient from in-cluster config or kubeconfig."""
    log = get_logger("app")
    # Import lazily: kubernetes-asyncio attempts cluster auto-detection on import in some versions.
    import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]
    from kubernetes_asyncio.client import ApiClient  # type: ignore[import-untyped]

    from kubeconverge.client.kubernetes import KubernetesClusterClient

    try:
        # load_incluster_config() is synchronous in kubernetes-asyncio
        k8s_config.load_incluster_config()
        log.info("k8s_client_configured", source="in_cluster")
    except k8s_config.ConfigException:
        await k8s_config.load_kube_config(context=config.kube.context or None)
        log.info("k8s_client_configured", source="kubeconfig", context=config.kube.context or "current")

    return await KubernetesClusterClient.connect(ApiClient())


class ConvergeRuntime:
    """Owns the cluster client, the deduplication cache and the installation lookup.

    Either construct it directly with a client (tests, embedding), or call
    ``start()`` to load configuration from the environment and connect.
    """

    def __init__(self, config: KubeConvergeConfig | None = None, client: ClusterClient | None = None) -> None:
        self.config = config
        self.cache = DeduplicationCache()
        self._client = client
        self._installation: InstallationLookup | None = None
        if config is not None and client is not None:
            self._installation = InstallationLookup(client, config.installation)
        self._log: structlog.stdlib.BoundLogger = get_logger("app")

    @property
    def client(self) -> ClusterClient:
        if self._client is None:
            raise RuntimeError("runtime not started")
        return self._client

    @property
    def installation(self) -> InstallationLookup:
        if self._installation is None:
            cfg = self.config.installation if self.config is not None else None
            self._installation = InstallationLookup(self.client, cfg)
        return self._installation

    async def start(self) -> None:
        """Load config, configure logging, and connect to the cluster if no client was given."""
        if self.config is None:
            self.config = load_config()
        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("kubeconverge_starting", version=_kubeconverge_version())

        if self._client is None:
            try:
                self._client = await connect(self.config)
            except Exception as exc:
                raise _ComponentError("k8s_client", exc) from exc
        self._installation = InstallationLookup(self._client, self.config.installation)
        self._log.info("kubeconverge_started")

    def handler(self, owner: Manifest | None = None) -> ComponentHandler:
        """Return a handler whose objects are owned by *owner* (None: unowned)."""
        return ComponentHandler(
            client=self.client,
            cache=self.cache,
            owner=owner,
            installation=self.installation,
        )

    async def close(self) -> None:
        """Release the API client. Safe to call more than once."""
        if self._client is None:
            return
        client, self._client = self._client, None
        self._installation = None
        self.cache.clear()
        await client.close()
        self._log.info("kubeconverge_stopped")


def _kubeconverge_version() -> str:
    from kubeconverge import __version__

    return __version__
