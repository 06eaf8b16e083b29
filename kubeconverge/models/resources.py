"""Resource identity, snapshot and merge-outcome data structures.

Managed resources are plain Kubernetes manifests (``dict[str, Any]``), the
same JSON shape the API server returns. Everything here is pure.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

Manifest = dict[str, Any]

# Server-managed metadata that changes on every write and must not count as drift.
_VOLATILE_METADATA = ("resourceVersion", "uid", "creationTimestamp", "generation", "managedFields", "selfLink")


class OwnershipMode(StrEnum):
    """How the configured owner is linked to a desired object."""

    CONTROLLER = "controller"
    SHARED = "shared"


class OSType(StrEnum):
    """Operating system a component's pods must be scheduled on."""

    ANY = "any"
    LINUX = "linux"
    WINDOWS = "windows"


class WorkloadKind(StrEnum):
    """Workload kinds reported to the status collaborator."""

    DEPLOYMENT = "deployment"
    DAEMONSET = "daemonset"
    STATEFULSET = "statefulset"
    CRONJOB = "cronjob"


class MergeAction(StrEnum):
    """What the handler must do after merging desired and current state."""

    NO_CHANGE = "no_change"
    UPDATE = "update"
    RECREATE = "recreate"


@dataclass(frozen=True)
class ResourceIdentity:
    """Addressing key for one managed resource.

    ``namespace`` is empty for cluster-scoped resources. The kind is qualified
    by ``api_version`` so same-named kinds from different API groups never
    collide in the deduplication cache.
    """

    api_version: str
    kind: str
    namespace: str
    name: str

    @property
    def group(self) -> str:
        """API group ("" for the core group)."""
        return group_of(self.api_version)

    @property
    def namespaced(self) -> bool:
        return bool(self.namespace)

    def __str__(self) -> str:
        return f"{self.kind}/{self.namespace}/{self.name}" if self.namespace else f"{self.kind}/{self.name}"


@dataclass
class DesiredObject:
    """A desired manifest plus the caller's decision on how it is owned."""

    obj: Manifest
    ownership: OwnershipMode = OwnershipMode.CONTROLLER


@dataclass(frozen=True)
class MergeOutcome:
    """Tagged result of a merge policy.

    ``obj`` is the object to submit for UPDATE and RECREATE, and None for
    NO_CHANGE.
    """

    action: MergeAction
    obj: Manifest | None = field(default=None, compare=False)

    @classmethod
    def no_change(cls) -> MergeOutcome:
        return cls(MergeAction.NO_CHANGE)

    @classmethod
    def update(cls, obj: Manifest) -> MergeOutcome:
        return cls(MergeAction.UPDATE, obj)

    @classmethod
    def recreate(cls, obj: Manifest) -> MergeOutcome:
        return cls(MergeAction.RECREATE, obj)


def group_of(api_version: str) -> str:
    """Return the API group of an apiVersion string ("apps/v1" -> "apps", "v1" -> "")."""
    if "/" not in api_version:
        return ""
    return api_version.split("/", 1)[0]


def metadata(obj: Manifest) -> dict[str, Any]:
    """Return ``obj["metadata"]``, creating it if absent."""
    meta = obj.get("metadata")
    if meta is None:
        meta = {}
        obj["metadata"] = meta
    return meta


def identity_of(obj: Manifest) -> ResourceIdentity:
    """Extract the ResourceIdentity of a manifest."""
    meta = obj.get("metadata") or {}
    return ResourceIdentity(
        api_version=str(obj.get("apiVersion", "")),
        kind=str(obj.get("kind", "")),
        namespace=str(meta.get("namespace") or ""),
        name=str(meta.get("name", "")),
    )


def generation_of(obj: Manifest) -> int:
    """Return metadata.generation, 0 for kinds the server does not version."""
    return int((obj.get("metadata") or {}).get("generation") or 0)


def is_terminating(obj: Manifest) -> bool:
    """True when the object carries a deletion timestamp."""
    return bool((obj.get("metadata") or {}).get("deletionTimestamp"))


def snapshot_of(obj: Manifest) -> Manifest:
    """Deep copy of *obj* without status and server-managed volatile metadata.

    Two snapshots are equal iff the objects are the same write from the
    reconciler's point of view.
    """
    snap = copy.deepcopy(obj)
    snap.pop("status", None)
    meta = snap.get("metadata")
    if meta is not None:
        for key in _VOLATILE_METADATA:
            meta.pop(key, None)
    return snap


def objects_equal(a: Any, b: Any) -> bool:
    """Structural equality over manifests (or any JSON-like values)."""
    return bool(a == b)


def reset_for_create(obj: Manifest) -> None:
    """Clear the identity-bearing metadata so *obj* is accepted as a fresh create."""
    meta = metadata(obj)
    for key in ("resourceVersion", "uid", "creationTimestamp"):
        meta.pop(key, None)
