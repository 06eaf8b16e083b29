"""Core data structures for kubeconverge."""

from kubeconverge.models.component import Component, ReadyFlag, StaticComponent, as_desired
from kubeconverge.models.config import KubeConvergeConfig
from kubeconverge.models.resources import (
    DesiredObject,
    Manifest,
    MergeAction,
    MergeOutcome,
    OSType,
    OwnershipMode,
    ResourceIdentity,
    WorkloadKind,
    identity_of,
    snapshot_of,
)

__all__ = [
    "Component",
    "DesiredObject",
    "KubeConvergeConfig",
    "Manifest",
    "MergeAction",
    "MergeOutcome",
    "OSType",
    "OwnershipMode",
    "ReadyFlag",
    "ResourceIdentity",
    "StaticComponent",
    "WorkloadKind",
    "as_desired",
    "identity_of",
    "snapshot_of",
]
