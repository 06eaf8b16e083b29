"""Prometheus counters for the reconciliation core.

All counters live in the default registry so a host process exposing
``prometheus_client`` metrics picks them up without extra wiring.
"""

from __future__ import annotations

from prometheus_client import Counter

object_writes_total = Counter(
    "kubeconverge_object_writes_total",
    "Writes issued against the cluster API, by operation and kind.",
    ["operation", "kind"],
)

dedup_skips_total = Counter(
    "kubeconverge_dedup_skips_total",
    "Updates skipped because the deduplication cache matched the desired object.",
    ["kind"],
)

conflict_retries_total = Counter(
    "kubeconverge_conflict_retries_total",
    "Optimistic-concurrency conflicts that triggered an in-call retry.",
    ["kind"],
)

component_reconciles_total = Counter(
    "kubeconverge_component_reconciles_total",
    "Component reconciliations by result (ok, not_ready, already_exists, error).",
    ["result"],
)
