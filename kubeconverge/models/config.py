"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class InstallationConfig:
    """Where the cluster-wide installation settings (TLS cipher suites) live."""

    api_version: str = "operator.tigera.io/v1"
    kind: str = "Installation"
    name: str = "default"


@dataclass
class KubeClientConfig:
    """Kubernetes client configuration."""

    # Only consulted when falling back to kubeconfig outside a cluster.
    context: str = ""


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class KubeConvergeConfig:
    """Top-level kubeconverge configuration."""

    installation: InstallationConfig = field(default_factory=InstallationConfig)
    kube: KubeClientConfig = field(default_factory=KubeClientConfig)
    log: LogConfig = field(default_factory=LogConfig)
