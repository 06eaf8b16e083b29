"""Built-in kind strategies.

Each class declares where its kind keeps pod specs (for the mutation
pipeline) and how desired and current state are combined on update. Kinds
with immutable fields return ``MergeOutcome.recreate`` when those fields
change; the handler then deletes and recreates the object.
"""

from __future__ import annotations

from typing import Any, ClassVar

from kubeconverge.merge.base import (
    KindStrategy,
    StrategyRegistry,
    containers_of,
    nested,
    union_maps,
)
from kubeconverge.models.resources import Manifest, MergeOutcome, WorkloadKind, metadata, objects_equal

K8S_APP_LABEL = "k8s-app"
APP_NAME_LABEL = "app.kubernetes.io/name"


def _merge_template_metadata(desired: Manifest, current: Manifest) -> None:
    """Union pod-template labels and annotations, desired winning."""
    d_template = nested(desired, "spec", "template")
    if d_template is None:
        return
    c_template = nested(current, "spec", "template") or {}
    d_meta = metadata(d_template)
    c_meta = c_template.get("metadata") or {}
    for key in ("labels", "annotations"):
        combined = union_maps(c_meta.get(key), d_meta.get(key))
        if combined:
            d_meta[key] = combined


class _TemplatedStrategy(KindStrategy):
    """Kinds with a pod template at ``spec.template``."""

    def pod_specs(self, obj: Manifest) -> list[dict[str, Any]]:
        spec = nested(obj, "spec", "template", "spec")
        return [spec] if spec is not None else []


class PodTemplateStrategy(KindStrategy):
    kinds = ("PodTemplate",)

    def pod_specs(self, obj: Manifest) -> list[dict[str, Any]]:
        spec = nested(obj, "template", "spec")
        return [spec] if spec is not None else []


class DeploymentStrategy(_TemplatedStrategy):
    api_group = "apps"
    kinds = ("Deployment",)
    workload = WorkloadKind.DEPLOYMENT
    takes_tls_ciphers = True

    def probe_containers(self, obj: Manifest) -> list[dict[str, Any]]:
        return [c for spec in self.pod_specs(obj) for c in containers_of(spec)]

    def apply_standard_labels(self, obj: Manifest) -> None:
        name = metadata(obj).get("name", "")
        labels = metadata(obj).setdefault("labels", {})
        labels[K8S_APP_LABEL] = name
        labels[APP_NAME_LABEL] = name
        _set_default_selector_and_template_labels(obj, name)

    def merge(self, desired: Manifest, current: Manifest) -> MergeOutcome:
        d_spec = desired.setdefault("spec", {})
        c_spec = current.get("spec") or {}
        # Only adopt the live replica count when we do not manage it ourselves.
        if d_spec.get("replicas") is None and c_spec.get("replicas") is not None:
            d_spec["replicas"] = c_spec["replicas"]
        _merge_template_metadata(desired, current)
        return MergeOutcome.update(desired)


class DaemonSetStrategy(_TemplatedStrategy):
    api_group = "apps"
    kinds = ("DaemonSet",)
    workload = WorkloadKind.DAEMONSET
    takes_tls_ciphers = True

    def probe_containers(self, obj: Manifest) -> list[dict[str, Any]]:
        return [c for spec in self.pod_specs(obj) for c in containers_of(spec)]

    def apply_standard_labels(self, obj: Manifest) -> None:
        _set_default_selector_and_template_labels(obj, metadata(obj).get("name", ""))

    def merge(self, desired: Manifest, current: Manifest) -> MergeOutcome:
        _merge_template_metadata(desired, current)
        return MergeOutcome.update(desired)


def _set_default_selector_and_template_labels(obj: Manifest, name: str) -> None:
    spec = obj.setdefault("spec", {})
    if spec.get("selector") is None:
        spec["selector"] = {"matchLabels": {K8S_APP_LABEL: name}}
    template_meta = metadata(spec.setdefault("template", {}))
    labels = template_meta.setdefault("labels", {})
    if not labels.get(K8S_APP_LABEL):
        labels[K8S_APP_LABEL] = name
    if not labels.get(APP_NAME_LABEL):
        labels[APP_NAME_LABEL] = name


class StatefulSetStrategy(_TemplatedStrategy):
    api_group = "apps"
    kinds = ("StatefulSet",)
    workload = WorkloadKind.STATEFULSET


class JobStrategy(_TemplatedStrategy):
    """Jobs cannot be patched in place: any relevant change means recreate.

    Only container count, container images and template annotations are
    compared.
    """

    api_group = "batch"
    kinds = ("Job",)

    def merge(self, desired: Manifest, current: Manifest) -> MergeOutcome:
        d_containers = [c for spec in self.pod_specs(desired) for c in containers_of(spec)]
        c_containers = [c for spec in self.pod_specs(current) for c in containers_of(spec)]

        if len(d_containers) != len(c_containers):
            return MergeOutcome.recreate(desired)
        for d, c in zip(d_containers, c_containers, strict=True):
            if d.get("image") != c.get("image"):
                return MergeOutcome.recreate(desired)

        d_annotations = (nested(desired, "spec", "template", "metadata") or {}).get("annotations") or {}
        c_annotations = (nested(current, "spec", "template", "metadata") or {}).get("annotations") or {}
        if objects_equal(d_annotations, c_annotations):
            return MergeOutcome.no_change()
        return MergeOutcome.recreate(desired)


class CronJobStrategy(KindStrategy):
    api_group = "batch"
    kinds = ("CronJob",)
    workload = WorkloadKind.CRONJOB

    def pod_specs(self, obj: Manifest) -> list[dict[str, Any]]:
        spec = nested(obj, "spec", "jobTemplate", "spec", "template", "spec")
        return [spec] if spec is not None else []


class ServiceStrategy(KindStrategy):
    """ClusterIP is allocated by the server and can only be removed by recreating."""

    kinds = ("Service",)

    def merge(self, desired: Manifest, current: Manifest) -> MergeOutcome:
        d_spec = desired.setdefault("spec", {})
        c_spec = current.get("spec") or {}
        if d_spec.get("clusterIP") == "None":
            if c_spec.get("clusterIP") != "None":
                return MergeOutcome.recreate(desired)
            return MergeOutcome.update(desired)

        for key in ("clusterIP", "clusterIPs"):
            if key in c_spec:
                d_spec[key] = c_spec[key]
        return MergeOutcome.update(desired)


class SecretStrategy(KindStrategy):
    """Secret type is immutable. An unset type is the same as Opaque."""

    kinds = ("Secret",)

    def merge(self, desired: Manifest, current: Manifest) -> MergeOutcome:
        d_type = desired.get("type") or ""
        c_type = current.get("type") or ""
        if d_type != c_type and not (d_type == "" and c_type == "Opaque"):
            return MergeOutcome.recreate(desired)
        return MergeOutcome.update(desired)


class ServiceAccountStrategy(KindStrategy):
    """Keep server-provisioned token and pull secrets unless we list our own."""

    kinds = ("ServiceAccount",)

    def merge(self, desired: Manifest, current: Manifest) -> MergeOutcome:
        for key in ("secrets", "imagePullSecrets"):
            if current.get(key) and not desired.get(key):
                desired[key] = current[key]
        return MergeOutcome.update(desired)


class RoleBindingStrategy(KindStrategy):
    """roleRef is immutable on (Cluster)RoleBindings."""

    api_group = "rbac.authorization.k8s.io"
    kinds = ("RoleBinding", "ClusterRoleBinding")

    def merge(self, desired: Manifest, current: Manifest) -> MergeOutcome:
        d_ref = (desired.get("roleRef") or {}).get("name")
        c_ref = (current.get("roleRef") or {}).get("name")
        if d_ref != c_ref:
            return MergeOutcome.recreate(desired)
        return MergeOutcome.update(desired)


class _ExternallyManagedStrategy(KindStrategy):
    """Resources whose own operator writes annotations, finalizers and status back.

    Only a spec change triggers a write, and then the fields owned by the
    other operator are carried over so the two controllers do not fight.
    """

    preserved_spec_fields: ClassVar[tuple[str, ...]] = ()

    def merge(self, desired: Manifest, current: Manifest) -> MergeOutcome:
        if objects_equal(desired.get("spec"), current.get("spec")):
            return MergeOutcome.no_change()

        d_meta = metadata(desired)
        c_meta = current.get("metadata") or {}
        for key in ("annotations", "finalizers"):
            if key in c_meta:
                d_meta[key] = c_meta[key]
            else:
                d_meta.pop(key, None)
        if "status" in current:
            desired["status"] = current["status"]

        d_spec = desired.setdefault("spec", {})
        c_spec = current.get("spec") or {}
        for key in self.preserved_spec_fields:
            if key in c_spec:
                d_spec[key] = c_spec[key]
        return MergeOutcome.update(desired)


class ElasticsearchStrategy(_ExternallyManagedStrategy):
    api_group = "elasticsearch.k8s.elastic.co"
    kinds = ("Elasticsearch",)

    def pod_specs(self, obj: Manifest) -> list[dict[str, Any]]:
        specs = []
        for node_set in (obj.get("spec") or {}).get("nodeSets") or []:
            spec = nested(node_set, "podTemplate", "spec")
            if spec is not None:
                specs.append(spec)
        return specs

    def probe_containers(self, obj: Manifest) -> list[dict[str, Any]]:
        return [c for spec in self.pod_specs(obj) for c in containers_of(spec)]


class KibanaStrategy(_ExternallyManagedStrategy):
    api_group = "kibana.k8s.elastic.co"
    kinds = ("Kibana",)
    preserved_spec_fields = ("elasticsearchRef",)

    def pod_specs(self, obj: Manifest) -> list[dict[str, Any]]:
        spec = nested(obj, "spec", "podTemplate", "spec")
        return [spec] if spec is not None else []

    def probe_containers(self, obj: Manifest) -> list[dict[str, Any]]:
        return [c for spec in self.pod_specs(obj) for c in containers_of(spec)]


class UISettingsStrategy(KindStrategy):
    """UISettings are garbage-collected through their UISettingsGroup.

    They never take our owner reference, and the references the API server
    returns are kept as they are.
    """

    api_group = "projectcalico.org"
    kinds = ("UISettings",)
    owner_exempt = True

    def merge(self, desired: Manifest, current: Manifest) -> MergeOutcome:
        if objects_equal(desired.get("spec"), current.get("spec")):
            return MergeOutcome.no_change()
        c_refs = (current.get("metadata") or {}).get("ownerReferences")
        d_meta = metadata(desired)
        if c_refs is not None:
            d_meta["ownerReferences"] = c_refs
        else:
            d_meta.pop("ownerReferences", None)
        return MergeOutcome.update(desired)


class CalicoPolicyStrategy(KindStrategy):
    api_group = "projectcalico.org"
    kinds = ("NetworkPolicy", "Tier")

    def merge(self, desired: Manifest, current: Manifest) -> MergeOutcome:
        if objects_equal(desired.get("spec"), current.get("spec")):
            return MergeOutcome.no_change()
        return MergeOutcome.update(desired)


class PrometheusStrategy(KindStrategy):
    """Prometheus-operator kinds carry pod fields directly on ``spec``."""

    api_group = "monitoring.coreos.com"
    kinds = ("Prometheus",)

    def node_selector_targets(self, obj: Manifest) -> list[dict[str, Any]]:
        return [obj.setdefault("spec", {})]

    def probe_containers(self, obj: Manifest) -> list[dict[str, Any]]:
        return list((obj.get("spec") or {}).get("containers") or [])


class AlertmanagerStrategy(KindStrategy):
    api_group = "monitoring.coreos.com"
    kinds = ("Alertmanager",)

    def node_selector_targets(self, obj: Manifest) -> list[dict[str, Any]]:
        return [obj.setdefault("spec", {})]


BUILTIN_STRATEGIES: tuple[KindStrategy, ...] = (
    PodTemplateStrategy(),
    DeploymentStrategy(),
    DaemonSetStrategy(),
    StatefulSetStrategy(),
    JobStrategy(),
    CronJobStrategy(),
    ServiceStrategy(),
    SecretStrategy(),
    ServiceAccountStrategy(),
    RoleBindingStrategy(),
    ElasticsearchStrategy(),
    KibanaStrategy(),
    UISettingsStrategy(),
    CalicoPolicyStrategy(),
    PrometheusStrategy(),
    AlertmanagerStrategy(),
)


def register_builtin_strategies(registry: StrategyRegistry) -> StrategyRegistry:
    for strategy in BUILTIN_STRATEGIES:
        registry.register(strategy)
    return registry
