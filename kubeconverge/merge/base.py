"""Kind strategies, the strategy registry, and the general metadata merge.

Every resource kind the reconciler knows about is described by one
KindStrategy. A strategy answers two questions:

* where the kind keeps its pod specs, containers and labels, so the mutation
  pipeline can normalise them, and
* how desired and current state combine on update (``merge``).

Kinds with no registered strategy fall back to ``DefaultStrategy``: no pod
specs, always update with the merged desired object.
"""

from __future__ import annotations

import copy
from typing import Any, ClassVar

from kubeconverge.models.resources import (
    Manifest,
    MergeOutcome,
    OwnershipMode,
    ResourceIdentity,
    WorkloadKind,
    group_of,
    metadata,
)

StrategyKey = tuple[str, str]


def nested(obj: Manifest, *path: str) -> dict[str, Any] | None:
    """Return the dict at *path* inside *obj*, or None if any step is missing."""
    node: Any = obj
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node if isinstance(node, dict) else None


def union_maps(current: dict[str, str] | None, desired: dict[str, str] | None) -> dict[str, str]:
    """Union of two string maps; desired wins on key conflicts."""
    merged = dict(current or {})
    merged.update(desired or {})
    return merged


def containers_of(pod_spec: dict[str, Any]) -> list[dict[str, Any]]:
    return pod_spec.get("containers") or []


class KindStrategy:
    """Capabilities of one or more resource kinds within an API group."""

    api_group: ClassVar[str] = ""
    kinds: ClassVar[tuple[str, ...]] = ()
    workload: ClassVar[WorkloadKind | None] = None
    # Objects garbage-collected through another parent never take our owner reference.
    owner_exempt: ClassVar[bool] = False
    # Containers receive the TLS_CIPHER_SUITES environment variable.
    takes_tls_ciphers: ClassVar[bool] = False

    def keys(self) -> list[StrategyKey]:
        return [(self.api_group, kind) for kind in self.kinds]

    def pod_specs(self, obj: Manifest) -> list[dict[str, Any]]:
        """Pod specs embedded in *obj* (mutated in place by the pipeline)."""
        return []

    def node_selector_targets(self, obj: Manifest) -> list[dict[str, Any]]:
        """Dicts that receive the OS ``nodeSelector``; pod specs unless overridden."""
        return self.pod_specs(obj)

    def probe_containers(self, obj: Manifest) -> list[dict[str, Any]]:
        """Containers whose probes get default thresholds."""
        return []

    def tls_containers(self, obj: Manifest) -> list[dict[str, Any]]:
        if not self.takes_tls_ciphers:
            return []
        return [c for spec in self.pod_specs(obj) for c in containers_of(spec)]

    def apply_standard_labels(self, obj: Manifest) -> None:
        """Set identity labels and default selector; no-op for most kinds."""

    def merge(self, desired: Manifest, current: Manifest) -> MergeOutcome:
        """Combine *desired* (already metadata-merged, safe to mutate) with *current*."""
        return MergeOutcome.update(desired)


class DefaultStrategy(KindStrategy):
    """Used for every kind without a registered strategy."""


class StrategyRegistry:
    """(api group, kind) -> KindStrategy table."""

    def __init__(self, default: KindStrategy | None = None) -> None:
        self._strategies: dict[StrategyKey, KindStrategy] = {}
        self._default = default or DefaultStrategy()

    def register(self, strategy: KindStrategy) -> KindStrategy:
        for key in strategy.keys():
            self._strategies[key] = strategy
        return strategy

    def lookup(self, api_version: str, kind: str) -> KindStrategy:
        return self._strategies.get((group_of(api_version), kind), self._default)

    def for_object(self, obj: Manifest) -> KindStrategy:
        return self.lookup(str(obj.get("apiVersion", "")), str(obj.get("kind", "")))

    def for_identity(self, identity: ResourceIdentity) -> KindStrategy:
        return self.lookup(identity.api_version, identity.kind)

    def __contains__(self, key: object) -> bool:
        return key in self._strategies


default_registry = StrategyRegistry()


def register_strategy(strategy: KindStrategy) -> KindStrategy:
    """Register *strategy* in the default registry."""
    return default_registry.register(strategy)


def strategy_for(obj: Manifest) -> KindStrategy:
    """Strategy for *obj* from the default registry."""
    return default_registry.for_object(obj)


def _owner_ref_key(ref: dict[str, Any]) -> tuple[str, ...]:
    uid = ref.get("uid")
    if uid:
        return ("uid", str(uid))
    return ("ref", str(ref.get("apiVersion", "")), str(ref.get("kind", "")), str(ref.get("name", "")))


def merge_owner_references(
    desired: list[dict[str, Any]] | None,
    current: list[dict[str, Any]] | None,
) -> list[dict[str, Any]]:
    """Desired references followed by any current ones not already present."""
    merged = [copy.deepcopy(ref) for ref in desired or []]
    seen = {_owner_ref_key(ref) for ref in merged}
    for ref in current or []:
        key = _owner_ref_key(ref)
        if key not in seen:
            merged.append(copy.deepcopy(ref))
            seen.add(key)
    return merged


def merge_metadata(desired: Manifest, current: Manifest, ownership: OwnershipMode) -> Manifest:
    """General merge applied to every kind before its strategy runs.

    Returns a new object; neither argument is modified.
    """
    merged = copy.deepcopy(desired)
    meta = metadata(merged)
    cur_meta = current.get("metadata") or {}

    for key in ("resourceVersion", "uid", "creationTimestamp"):
        if not meta.get(key) and cur_meta.get(key):
            meta[key] = cur_meta[key]

    if "generation" in cur_meta:
        meta["generation"] = cur_meta["generation"]
    else:
        meta.pop("generation", None)

    for key in ("annotations", "labels"):
        combined = union_maps(cur_meta.get(key), meta.get(key))
        if combined:
            meta[key] = combined

    if ownership is OwnershipMode.SHARED:
        refs = merge_owner_references(meta.get("ownerReferences"), cur_meta.get("ownerReferences"))
        if refs:
            meta["ownerReferences"] = refs

    return merged
