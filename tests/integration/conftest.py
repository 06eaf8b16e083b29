"""Shared fixtures for kubeconverge integration tests.

Provides an in-memory cluster (FakeClusterClient) that behaves like the API
server where the handler cares: it assigns uid, resourceVersion, generation
and creationTimestamp, rejects stale resourceVersions, and keeps status
across replaces. Calls are recorded and failures can be scripted per
(operation, identity), so tests exercise the full handler without a cluster.
"""

from __future__ import annotations

import copy
import itertools
from typing import Any

import pytest

from kubeconverge.cache import DeduplicationCache
from kubeconverge.client import ClusterClient, InstallationLookup
from kubeconverge.engine import ComponentHandler, StatusReporter
from kubeconverge.errors import AlreadyExistsError, ConflictError, NotFoundError
from kubeconverge.models.resources import Manifest, ResourceIdentity, identity_of

# ---------------------------------------------------------------------------
# In-memory cluster
# ---------------------------------------------------------------------------


class FakeClusterClient(ClusterClient):
    """Dict-backed ClusterClient that records every call."""

    def __init__(self) -> None:
        self.objects: dict[ResourceIdentity, Manifest] = {}
        self.calls: list[tuple[str, ResourceIdentity]] = []
        self.payloads: dict[str, list[Manifest]] = {"create": [], "update": []}
        self._failures: dict[tuple[str, ResourceIdentity], list[BaseException]] = {}
        self._uids = itertools.count(1)
        self._versions = itertools.count(1)
        self.closed = False

    # --- test helpers ------------------------------------------------------

    def fail(self, operation: str, identity: ResourceIdentity, *errors: BaseException) -> None:
        """Raise *errors*, one per call, the next times *operation* hits *identity*."""
        self._failures.setdefault((operation, identity), []).extend(errors)

    def seed(self, obj: Manifest, generation: int = 1) -> Manifest:
        """Store *obj* as if someone else had created it; not recorded as a call."""
        stored = copy.deepcopy(obj)
        meta = stored.setdefault("metadata", {})
        meta["uid"] = f"uid-{next(self._uids)}"
        meta["resourceVersion"] = str(next(self._versions))
        meta["creationTimestamp"] = "2026-01-01T00:00:00Z"
        meta["generation"] = generation
        self.objects[identity_of(stored)] = stored
        return copy.deepcopy(stored)

    def stored(self, identity: ResourceIdentity) -> Manifest:
        return self.objects[identity]

    def calls_of(self, operation: str) -> list[ResourceIdentity]:
        return [identity for op, identity in self.calls if op == operation]

    def writes(self) -> list[tuple[str, ResourceIdentity]]:
        return [(op, identity) for op, identity in self.calls if op != "get"]

    def _record(self, operation: str, identity: ResourceIdentity) -> None:
        self.calls.append((operation, identity))
        pending = self._failures.get((operation, identity))
        if pending:
            raise pending.pop(0)

    # --- ClusterClient -----------------------------------------------------

    async def get(self, identity: ResourceIdentity) -> Manifest:
        self._record("get", identity)
        if identity not in self.objects:
            raise NotFoundError(identity)
        return copy.deepcopy(self.objects[identity])

    async def create(self, obj: Manifest) -> Manifest:
        identity = identity_of(obj)
        self.payloads["create"].append(copy.deepcopy(obj))
        self._record("create", identity)
        if identity in self.objects:
            raise AlreadyExistsError(identity)
        return self.seed(obj)

    async def update(self, obj: Manifest) -> Manifest:
        identity = identity_of(obj)
        self.payloads["update"].append(copy.deepcopy(obj))
        self._record("update", identity)
        current = self.objects.get(identity)
        if current is None:
            raise NotFoundError(identity)
        cur_meta = current["metadata"]
        sent_rv = (obj.get("metadata") or {}).get("resourceVersion")
        if sent_rv and sent_rv != cur_meta["resourceVersion"]:
            raise ConflictError(identity, "the object has been modified")

        stored = copy.deepcopy(obj)
        meta = stored.setdefault("metadata", {})
        meta["uid"] = cur_meta["uid"]
        meta["creationTimestamp"] = cur_meta["creationTimestamp"]
        meta["resourceVersion"] = str(next(self._versions))
        generation = cur_meta.get("generation", 1)
        meta["generation"] = generation + 1 if stored.get("spec") != current.get("spec") else generation
        # Status is only writable through the status subresource.
        if "status" in current:
            stored["status"] = copy.deepcopy(current["status"])
        else:
            stored.pop("status", None)
        self.objects[identity] = stored
        return copy.deepcopy(stored)

    async def delete(self, identity: ResourceIdentity) -> None:
        self._record("delete", identity)
        if identity not in self.objects:
            raise NotFoundError(identity)
        del self.objects[identity]

    async def close(self) -> None:
        self.closed = True


class DefaultingClusterClient(FakeClusterClient):
    """FakeClusterClient that fills in server-side defaults on create.

    Allocates Service cluster IPs, defaults Deployment replicas and revision
    annotation, and provisions a ServiceAccount token secret.
    """

    async def create(self, obj: Manifest) -> Manifest:
        defaulted = copy.deepcopy(obj)
        kind = defaulted.get("kind")
        spec = defaulted.setdefault("spec", {}) if kind in ("Service", "Deployment") else None
        if kind == "Service" and spec.get("clusterIP") != "None":
            spec["clusterIP"] = "10.96.0.7"
            spec["clusterIPs"] = ["10.96.0.7"]
        elif kind == "Deployment":
            spec.setdefault("replicas", 1)
            annotations = defaulted["metadata"].setdefault("annotations", {})
            annotations["deployment.kubernetes.io/revision"] = "1"
        elif kind == "ServiceAccount":
            defaulted.setdefault("secrets", [{"name": f"{defaulted['metadata']['name']}-token"}])
        return await super().create(defaulted)


class RecordingStatus(StatusReporter):
    """StatusReporter that remembers every call."""

    def __init__(self) -> None:
        self.added: dict[str, list[ResourceIdentity]] = {}
        self.removed: dict[str, list[ResourceIdentity]] = {}
        self.ready = False

    def _add(self, kind: str, identities: list[ResourceIdentity]) -> None:
        self.added.setdefault(kind, []).extend(identities)

    def _remove(self, kind: str, identity: ResourceIdentity) -> None:
        self.removed.setdefault(kind, []).append(identity)

    def add_deployments(self, identities: list[ResourceIdentity]) -> None:
        self._add("deployment", identities)

    def add_daemonsets(self, identities: list[ResourceIdentity]) -> None:
        self._add("daemonset", identities)

    def add_statefulsets(self, identities: list[ResourceIdentity]) -> None:
        self._add("statefulset", identities)

    def add_cronjobs(self, identities: list[ResourceIdentity]) -> None:
        self._add("cronjob", identities)

    def remove_deployments(self, identity: ResourceIdentity) -> None:
        self._remove("deployment", identity)

    def remove_daemonsets(self, identity: ResourceIdentity) -> None:
        self._remove("daemonset", identity)

    def remove_statefulsets(self, identity: ResourceIdentity) -> None:
        self._remove("statefulset", identity)

    def remove_cronjobs(self, identity: ResourceIdentity) -> None:
        self._remove("cronjob", identity)

    def ready_to_monitor(self) -> None:
        self.ready = True


# ---------------------------------------------------------------------------
# Manifest factory helpers
# ---------------------------------------------------------------------------


def make_namespace(name: str = "ns-a", terminating: bool = False) -> Manifest:
    meta: dict[str, Any] = {"name": name}
    if terminating:
        meta["deletionTimestamp"] = "2026-01-01T00:00:00Z"
    return {"apiVersion": "v1", "kind": "Namespace", "metadata": meta}


def make_config_map(name: str = "cm1", namespace: str = "ns-a", data: dict[str, str] | None = None) -> Manifest:
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": name, "namespace": namespace},
        "data": data or {"key": "value"},
    }


def make_deployment(
    name: str = "d1",
    namespace: str = "ns-a",
    image: str = "registry.example/app:v1",
    replicas: int | None = None,
) -> Manifest:
    spec: dict[str, Any] = {
        "template": {
            "spec": {
                "containers": [
                    {
                        "name": name,
                        "image": image,
                        "volumeMounts": [{"name": "tls", "mountPath": "/tls"}, {"name": "config", "mountPath": "/c"}],
                        "livenessProbe": {"httpGet": {"path": "/live", "port": 9090}},
                        "readinessProbe": {"httpGet": {"path": "/ready", "port": 9090}},
                    }
                ],
                "volumes": [{"name": "tls", "secret": {"secretName": "tls"}}, {"name": "config", "configMap": {"name": "c"}}],
            }
        }
    }
    if replicas is not None:
        spec["replicas"] = replicas
    return {"apiVersion": "apps/v1", "kind": "Deployment", "metadata": {"name": name, "namespace": namespace}, "spec": spec}


def make_daemonset(name: str = "node-agent", namespace: str = "ns-a") -> Manifest:
    return {
        "apiVersion": "apps/v1",
        "kind": "DaemonSet",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {"template": {"spec": {"containers": [{"name": name, "image": "registry.example/agent:v1"}]}}},
    }


def make_secret(name: str = "s1", namespace: str = "ns-a", secret_type: str | None = "Opaque") -> Manifest:
    obj: Manifest = {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": name, "namespace": namespace},
        "data": {"token": "c2VjcmV0"},
    }
    if secret_type is not None:
        obj["type"] = secret_type
    return obj


def make_role_binding(name: str = "rb1", namespace: str = "ns-a", role: str = "reader") -> Manifest:
    return {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "RoleBinding",
        "metadata": {"name": name, "namespace": namespace},
        "roleRef": {"apiGroup": "rbac.authorization.k8s.io", "kind": "Role", "name": role},
        "subjects": [{"kind": "ServiceAccount", "name": "sa", "namespace": namespace}],
    }


def make_elasticsearch(name: str = "logs", namespace: str = "ns-a") -> Manifest:
    return {
        "apiVersion": "elasticsearch.k8s.elastic.co/v1",
        "kind": "Elasticsearch",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {
            "version": "8.12.0",
            "nodeSets": [
                {
                    "name": "default",
                    "count": 1,
                    "podTemplate": {"spec": {"containers": [{"name": "elasticsearch", "image": "es:8.12.0"}]}},
                }
            ],
        },
    }


def make_service(name: str = "svc", namespace: str = "ns-a") -> Manifest:
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {"selector": {"k8s-app": name}, "ports": [{"port": 443}]},
    }


def make_service_account(name: str = "sa", namespace: str = "ns-a") -> Manifest:
    return {"apiVersion": "v1", "kind": "ServiceAccount", "metadata": {"name": name, "namespace": namespace}}


def make_owner(name: str = "tigera-secure", namespace: str = "") -> Manifest:
    meta: dict[str, Any] = {"name": name, "uid": "owner-uid-1"}
    if namespace:
        meta["namespace"] = namespace
    return {"apiVersion": "operator.tigera.io/v1", "kind": "LogStorage", "metadata": meta}


def identity(obj: Manifest) -> ResourceIdentity:
    return identity_of(obj)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cluster() -> FakeClusterClient:
    return FakeClusterClient()


@pytest.fixture
def cache() -> DeduplicationCache:
    return DeduplicationCache()


@pytest.fixture
def status() -> RecordingStatus:
    return RecordingStatus()


@pytest.fixture
def handler(cluster: FakeClusterClient, cache: DeduplicationCache) -> ComponentHandler:
    return ComponentHandler(client=cluster, cache=cache, installation=InstallationLookup(cluster))
