"""ClusterClient backed by the kubernetes-asyncio dynamic client.

The dynamic client resolves any apiVersion/kind through discovery, so one
adapter serves core kinds and CRDs (Elasticsearch, Calico, Prometheus
operator) alike. API errors are classified here and nowhere else.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]
from kubernetes_asyncio.dynamic import DynamicClient  # type: ignore[import-untyped]

from kubeconverge.client.base import ClusterClient
from kubeconverge.errors import AlreadyExistsError, ClusterAPIError, ConflictError, NotFoundError
from kubeconverge.models.resources import Manifest, ResourceIdentity, identity_of
from kubeconverge.observability.logging import get_logger

if TYPE_CHECKING:
    from kubernetes_asyncio.client import ApiClient  # type: ignore[import-untyped]

_log = get_logger("client.kubernetes")

# Dependents are garbage-collected in the background instead of being orphaned.
_DELETE_BODY = {"kind": "DeleteOptions", "apiVersion": "v1", "propagationPolicy": "Background"}


def _status_reason(exc: ApiException) -> str:
    """Return the Status.reason from the response body, else the HTTP reason."""
    body = getattr(exc, "body", None)
    if body:
        try:
            payload = json.loads(body)
        except (TypeError, ValueError):
            payload = None
        if isinstance(payload, dict) and payload.get("reason"):
            return str(payload["reason"])
    return str(getattr(exc, "reason", "") or "")


def classify_api_exception(exc: ApiException, identity: ResourceIdentity | None) -> ClusterAPIError | None:
    """Map an ApiException onto the kubeconverge taxonomy.

    Returns None when the failure is not one the handler branches on; the
    caller then re-raises the original exception.
    """
    reason = _status_reason(exc)
    if exc.status == 404:
        return NotFoundError(identity, reason or "not found")
    if exc.status == 409:
        if reason == "AlreadyExists":
            return AlreadyExistsError(identity, "already exists")
        return ConflictError(identity, reason or "conflict")
    return None


class KubernetesClusterClient(ClusterClient):
    """Dynamic-client adapter. Build it with ``await KubernetesClusterClient.connect(api_client)``."""

    def __init__(self, api_client: ApiClient, dynamic: DynamicClient) -> None:
        self._api_client = api_client
        self._dynamic = dynamic
        self._resources: dict[tuple[str, str], Any] = {}

    @classmethod
    async def connect(cls, api_client: ApiClient) -> KubernetesClusterClient:
        dynamic = await DynamicClient(api_client)
        return cls(api_client, dynamic)

    async def _resource(self, api_version: str, kind: str) -> Any:
        key = (api_version, kind)
        resource = self._resources.get(key)
        if resource is None:
            resource = await self._dynamic.resources.get(api_version=api_version, kind=kind)
            self._resources[key] = resource
        return resource

    async def get(self, identity: ResourceIdentity) -> Manifest:
        resource = await self._resource(identity.api_version, identity.kind)
        try:
            result = await self._dynamic.get(
                resource,
                name=identity.name,
                namespace=identity.namespace or None,
            )
        except ApiException as exc:
            classified = classify_api_exception(exc, identity)
            if classified is None:
                raise
            raise classified from exc
        return result.to_dict()

    async def create(self, obj: Manifest) -> Manifest:
        identity = identity_of(obj)
        resource = await self._resource(identity.api_version, identity.kind)
        try:
            result = await self._dynamic.create(resource, body=obj, namespace=identity.namespace or None)
        except ApiException as exc:
            classified = classify_api_exception(exc, identity)
            if classified is None:
                raise
            raise classified from exc
        _log.debug("object_created", object=identity)
        return result.to_dict()

    async def update(self, obj: Manifest) -> Manifest:
        identity = identity_of(obj)
        resource = await self._resource(identity.api_version, identity.kind)
        try:
            result = await self._dynamic.replace(
                resource,
                body=obj,
                name=identity.name,
                namespace=identity.namespace or None,
            )
        except ApiException as exc:
            classified = classify_api_exception(exc, identity)
            if classified is None:
                raise
            raise classified from exc
        _log.debug("object_replaced", object=identity)
        return result.to_dict()

    async def delete(self, identity: ResourceIdentity) -> None:
        resource = await self._resource(identity.api_version, identity.kind)
        try:
            await self._dynamic.delete(
                resource,
                name=identity.name,
                namespace=identity.namespace or None,
                body=_DELETE_BODY,
            )
        except ApiException as exc:
            classified = classify_api_exception(exc, identity)
            if classified is None:
                raise
            raise classified from exc
        _log.debug("object_deleted", object=identity)

    async def close(self) -> None:
        await self._api_client.close()
