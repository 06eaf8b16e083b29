"""Desired-state normalisers applied to every object before it is written.

The steps run in a fixed order (see ``STEPS``). Each one mutates the desired
manifest in place, never the observed one, and is idempotent: running the
pipeline twice produces exactly the same manifest as running it once.

Where a kind keeps its pod specs, probes and labels is answered by its
KindStrategy, so adding a kind never touches this module.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from kubeconverge.errors import AlreadyOwnedError
from kubeconverge.merge import StrategyRegistry, default_registry
from kubeconverge.merge.base import KindStrategy, containers_of
from kubeconverge.models.resources import (
    Manifest,
    OSType,
    OwnershipMode,
    group_of,
    identity_of,
    metadata,
)

OS_LABEL = "kubernetes.io/os"
TLS_CIPHERS_ENV_VAR_NAME = "TLS_CIPHER_SUITES"
DEFAULT_PULL_POLICY = "IfNotPresent"

# Liveness failure is declared after ~3 minutes, readiness after ~1.5 minutes.
PROBE_FAILURE_THRESHOLD = 3
PROBE_SUCCESS_THRESHOLD = 1
PROBE_TIMEOUT_SECONDS = 5
LIVENESS_PERIOD_SECONDS = 60
READINESS_PERIOD_SECONDS = 30


@dataclass
class MutationContext:
    """Inputs shared by all steps for one desired object."""

    owner: Manifest | None = None
    ownership: OwnershipMode = OwnershipMode.CONTROLLER
    os_type: OSType = OSType.ANY
    tls_cipher_suites: str = ""
    registry: StrategyRegistry = field(default=default_registry)

    def strategy(self, obj: Manifest) -> KindStrategy:
        return self.registry.for_object(obj)


Step = Callable[[Manifest, MutationContext], None]


def _owner_reference(owner: Manifest, controller: bool) -> dict[str, Any]:
    meta = owner.get("metadata") or {}
    ref: dict[str, Any] = {
        "apiVersion": owner.get("apiVersion", ""),
        "kind": owner.get("kind", ""),
        "name": meta.get("name", ""),
        "uid": meta.get("uid", ""),
    }
    if controller:
        ref["controller"] = True
        ref["blockOwnerDeletion"] = True
    return ref


def _refers_to_same_owner(a: dict[str, Any], b: dict[str, Any]) -> bool:
    return (
        group_of(str(a.get("apiVersion", ""))) == group_of(str(b.get("apiVersion", "")))
        and a.get("kind") == b.get("kind")
        and a.get("name") == b.get("name")
    )


def set_owner_reference(obj: Manifest, ctx: MutationContext) -> None:
    """Link *obj* to the configured owner.

    Skipped when there is no owner, when the kind is owner-exempt, or when a
    namespaced owner would own a cluster-scoped object (the API server
    rejects cross-scope references).
    """
    owner = ctx.owner
    if owner is None or ctx.strategy(obj).owner_exempt:
        return
    owner_ns = (owner.get("metadata") or {}).get("namespace") or ""
    meta = metadata(obj)
    if owner_ns and not meta.get("namespace"):
        return

    controller = ctx.ownership is OwnershipMode.CONTROLLER
    ref = _owner_reference(owner, controller=controller)
    refs = [dict(r) for r in meta.get("ownerReferences") or []]

    if controller:
        for existing in refs:
            if existing.get("controller") and not _refers_to_same_owner(existing, ref):
                raise AlreadyOwnedError(
                    identity_of(obj),
                    owner=f"{ref['kind']}/{ref['name']}",
                    existing=f"{existing.get('kind')}/{existing.get('name')}",
                )

    for i, existing in enumerate(refs):
        if _refers_to_same_owner(existing, ref):
            refs[i] = ref
            break
    else:
        refs.append(ref)
    meta["ownerReferences"] = refs


def ensure_os_scheduling(obj: Manifest, ctx: MutationContext) -> None:
    """Pin pods to nodes running the component's operating system."""
    if ctx.os_type is OSType.ANY:
        return
    for target in ctx.strategy(obj).node_selector_targets(obj):
        selector = target.get("nodeSelector") or {}
        selector[OS_LABEL] = ctx.os_type.value
        target["nodeSelector"] = selector


def set_image_pull_policy(obj: Manifest, ctx: MutationContext) -> None:
    for pod_spec in ctx.strategy(obj).pod_specs(obj):
        for container in containers_of(pod_spec):
            if not container.get("imagePullPolicy"):
                container["imagePullPolicy"] = DEFAULT_PULL_POLICY


def _by_name(item: dict[str, Any]) -> str:
    return str(item.get("name", ""))


def order_volumes(obj: Manifest, ctx: MutationContext) -> None:
    for pod_spec in ctx.strategy(obj).pod_specs(obj):
        if pod_spec.get("volumes"):
            pod_spec["volumes"] = sorted(pod_spec["volumes"], key=_by_name)


def order_volume_mounts(obj: Manifest, ctx: MutationContext) -> None:
    for pod_spec in ctx.strategy(obj).pod_specs(obj):
        for container in containers_of(pod_spec):
            if container.get("volumeMounts"):
                container["volumeMounts"] = sorted(container["volumeMounts"], key=_by_name)


def _default_probe(probe: dict[str, Any], period_seconds: int) -> None:
    defaults = (
        ("failureThreshold", PROBE_FAILURE_THRESHOLD),
        ("periodSeconds", period_seconds),
        ("successThreshold", PROBE_SUCCESS_THRESHOLD),
        ("timeoutSeconds", PROBE_TIMEOUT_SECONDS),
    )
    for key, value in defaults:
        if not probe.get(key):
            probe[key] = value


def set_probe_timeouts(obj: Manifest, ctx: MutationContext) -> None:
    """Raise Kubernetes' aggressive probe defaults (1s timeout) for unset fields."""
    for container in ctx.strategy(obj).probe_containers(obj):
        if container.get("livenessProbe") is not None:
            _default_probe(container["livenessProbe"], LIVENESS_PERIOD_SECONDS)
        if container.get("readinessProbe") is not None:
            _default_probe(container["readinessProbe"], READINESS_PERIOD_SECONDS)


def set_standard_labels(obj: Manifest, ctx: MutationContext) -> None:
    ctx.strategy(obj).apply_standard_labels(obj)


def ensure_tls_ciphers(obj: Manifest, ctx: MutationContext) -> None:
    """Add TLS_CIPHER_SUITES to containers that do not set it themselves."""
    if not ctx.tls_cipher_suites:
        return
    for container in ctx.strategy(obj).tls_containers(obj):
        env = container.get("env") or []
        if any(var.get("name") == TLS_CIPHERS_ENV_VAR_NAME for var in env):
            continue
        env.append({"name": TLS_CIPHERS_ENV_VAR_NAME, "value": ctx.tls_cipher_suites})
        container["env"] = env


STEPS: tuple[Step, ...] = (
    set_owner_reference,
    ensure_os_scheduling,
    set_image_pull_policy,
    order_volumes,
    order_volume_mounts,
    set_probe_timeouts,
    set_standard_labels,
    ensure_tls_ciphers,
)


def mutate(obj: Manifest, ctx: MutationContext) -> Manifest:
    """Run every step over *obj* in order and return it."""
    for step in STEPS:
        step(obj, ctx)
    return obj
