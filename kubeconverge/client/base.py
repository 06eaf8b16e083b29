"""Cluster API boundary consumed by the handler."""

from __future__ import annotations

from abc import ABC, abstractmethod

from kubeconverge.models.resources import Manifest, ResourceIdentity


class ClusterClient(ABC):
    """Minimal get/create/update/delete surface over a Kubernetes API.

    Implementations classify failures where the call is made:
    ``NotFoundError`` for 404, ``AlreadyExistsError`` and ``ConflictError``
    for the two kinds of 409. Every other failure propagates unchanged.
    """

    @abstractmethod
    async def get(self, identity: ResourceIdentity) -> Manifest:
        """Return the live object or raise ``NotFoundError``."""

    @abstractmethod
    async def create(self, obj: Manifest) -> Manifest:
        """Create *obj* and return the object as stored by the server."""

    @abstractmethod
    async def update(self, obj: Manifest) -> Manifest:
        """Replace *obj*; raises ``ConflictError`` on a stale resourceVersion."""

    @abstractmethod
    async def delete(self, identity: ResourceIdentity) -> None:
        """Delete the object or raise ``NotFoundError``."""

    async def close(self) -> None:
        """Release transport resources. Default: nothing to release."""
