"""Property-based fuzz tests for the write path's pure pieces.

Uses hypothesis to generate randomised workloads and metadata and validates that:
 1. The mutation pipeline is idempotent (second run changes nothing, byte for byte)
 2. Volumes and mounts always come out sorted by name
 3. Snapshots ignore server-managed metadata and status
 4. The dedup cache never asks for a write right after the same object was written
 5. merge_metadata is idempotent against the same live object
"""

from __future__ import annotations

import copy
import json

from hypothesis import given, settings
from hypothesis import strategies as st

from kubeconverge.cache import DeduplicationCache
from kubeconverge.merge import merge_metadata
from kubeconverge.models.resources import OSType, OwnershipMode, identity_of, snapshot_of
from kubeconverge.mutation import TLS_CIPHERS_ENV_VAR_NAME, MutationContext, mutate

# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

_names = st.from_regex(r"[a-z][a-z0-9\-]{0,12}", fullmatch=True)
_label_maps = st.dictionaries(_names, _names, max_size=4)

_probes = st.one_of(
    st.none(),
    st.fixed_dictionaries(
        {"httpGet": st.just({"path": "/healthz", "port": 8080})},
        optional={
            "failureThreshold": st.integers(min_value=0, max_value=10),
            "periodSeconds": st.integers(min_value=0, max_value=120),
            "successThreshold": st.integers(min_value=0, max_value=3),
            "timeoutSeconds": st.integers(min_value=0, max_value=30),
        },
    ),
)


@st.composite
def _containers(draw: st.DrawFn) -> dict:
    container: dict = {
        "name": draw(_names),
        "image": f"registry.example/{draw(_names)}:v{draw(st.integers(min_value=1, max_value=9))}",
        "volumeMounts": [{"name": n, "mountPath": f"/{n}"} for n in draw(st.lists(_names, max_size=5))],
    }
    for key in ("livenessProbe", "readinessProbe"):
        probe = draw(_probes)
        if probe is not None:
            container[key] = probe
    if draw(st.booleans()):
        container["env"] = [{"name": TLS_CIPHERS_ENV_VAR_NAME, "value": draw(_names)}]
    if draw(st.booleans()):
        container["imagePullPolicy"] = draw(st.sampled_from(["Always", "Never", "IfNotPresent"]))
    return container


@st.composite
def _workloads(draw: st.DrawFn) -> dict:
    kind = draw(st.sampled_from(["Deployment", "DaemonSet", "StatefulSet"]))
    name = draw(_names)
    pod_spec = {
        "containers": draw(st.lists(_containers(), min_size=1, max_size=3)),
        "volumes": [{"name": n, "emptyDir": {}} for n in draw(st.lists(_names, max_size=5))],
    }
    meta: dict = {"name": name, "namespace": draw(_names)}
    labels = draw(_label_maps)
    if labels:
        meta["labels"] = labels
    return {"apiVersion": "apps/v1", "kind": kind, "metadata": meta, "spec": {"template": {"spec": pod_spec}}}


_contexts = st.builds(
    MutationContext,
    owner=st.one_of(
        st.none(),
        st.just({"apiVersion": "operator.tigera.io/v1", "kind": "Installation", "metadata": {"name": "default", "uid": "u"}}),
    ),
    ownership=st.sampled_from(list(OwnershipMode)),
    os_type=st.sampled_from(list(OSType)),
    tls_cipher_suites=st.sampled_from(["", "TLS_AES_128_GCM_SHA256", "A,B,C"]),
)


# ===========================================================================
# A. Mutation pipeline
# ===========================================================================


class TestMutationFuzz:
    @given(obj=_workloads(), ctx=_contexts)
    @settings(max_examples=100)
    def test_pipeline_is_idempotent(self, obj: dict, ctx: MutationContext) -> None:
        once = mutate(copy.deepcopy(obj), ctx)
        twice = mutate(copy.deepcopy(once), ctx)
        assert json.dumps(once) == json.dumps(twice)

    @given(obj=_workloads(), ctx=_contexts)
    @settings(max_examples=50)
    def test_volumes_and_mounts_sorted(self, obj: dict, ctx: MutationContext) -> None:
        pod_spec = mutate(obj, ctx)["spec"]["template"]["spec"]
        names = [v["name"] for v in pod_spec.get("volumes", [])]
        assert names == sorted(names)
        for container in pod_spec["containers"]:
            mounts = [m["name"] for m in container.get("volumeMounts", [])]
            assert mounts == sorted(mounts)

    @given(obj=_workloads(), ctx=_contexts)
    @settings(max_examples=50)
    def test_every_container_has_a_pull_policy(self, obj: dict, ctx: MutationContext) -> None:
        for container in mutate(obj, ctx)["spec"]["template"]["spec"]["containers"]:
            assert container["imagePullPolicy"]


# ===========================================================================
# B. Snapshots and the dedup cache
# ===========================================================================


_volatile = st.fixed_dictionaries(
    {
        "resourceVersion": st.integers(min_value=1).map(str),
        "uid": _names,
        "generation": st.integers(min_value=1, max_value=1000),
        "creationTimestamp": st.just("2026-01-01T00:00:00Z"),
    }
)


class TestSnapshotFuzz:
    @given(obj=_workloads(), volatile=_volatile, status=st.dictionaries(_names, _names, max_size=3))
    @settings(max_examples=50)
    def test_server_fields_never_change_the_snapshot(self, obj: dict, volatile: dict, status: dict) -> None:
        live = copy.deepcopy(obj)
        live["metadata"].update(volatile)
        live["status"] = status
        assert snapshot_of(live) == snapshot_of(obj)

    @given(obj=_workloads(), volatile=_volatile)
    @settings(max_examples=50)
    def test_no_update_right_after_write(self, obj: dict, volatile: dict) -> None:
        cache = DeduplicationCache()
        ident = identity_of(obj)
        cache.set(ident, obj, generation=volatile["generation"])
        live = copy.deepcopy(obj)
        live["metadata"].update(volatile)
        assert cache.needs_update(ident, live) is False

        live["metadata"]["generation"] += 1
        assert cache.needs_update(ident, live) is True


# ===========================================================================
# C. Metadata merge
# ===========================================================================


class TestMergeMetadataFuzz:
    @given(
        desired=_workloads(),
        current_labels=_label_maps,
        current_annotations=_label_maps,
        volatile=_volatile,
        ownership=st.sampled_from(list(OwnershipMode)),
    )
    @settings(max_examples=50)
    def test_merge_is_idempotent(
        self,
        desired: dict,
        current_labels: dict,
        current_annotations: dict,
        volatile: dict,
        ownership: OwnershipMode,
    ) -> None:
        current = copy.deepcopy(desired)
        current["metadata"].update(volatile, labels=current_labels, annotations=current_annotations)
        once = merge_metadata(desired, current, ownership)
        assert merge_metadata(once, current, ownership) == once
