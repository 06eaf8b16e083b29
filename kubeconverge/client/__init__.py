"""Cluster API client boundary.

Submodules:
    base         -- ClusterClient ABC consumed by the handler.
    kubernetes   -- kubernetes-asyncio dynamic-client adapter and error classification.
    installation -- Installation lookup supplying TLS cipher suites.
"""

from kubeconverge.client.base import ClusterClient
from kubeconverge.client.installation import InstallationLookup, format_cipher_suites

__all__ = ["ClusterClient", "InstallationLookup", "format_cipher_suites"]
