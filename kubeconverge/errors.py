"""Error taxonomy for the reconciliation core.

Cluster API failures are classified where the call is made (see
``kubeconverge.client.kubernetes``); the handler branches on these classes
and lets anything unclassified propagate untouched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kubeconverge.models.resources import ResourceIdentity


class KubeConvergeError(Exception):
    """Base class for all kubeconverge errors."""


class ClusterAPIError(KubeConvergeError):
    """A classified failure returned by the cluster API for one resource."""

    def __init__(self, identity: ResourceIdentity | None, message: str = "") -> None:
        detail = message or self.__class__.__name__
        super().__init__(f"{identity}: {detail}" if identity is not None else detail)
        self.identity = identity


class NotFoundError(ClusterAPIError):
    """The resource does not exist."""


class AlreadyExistsError(ClusterAPIError):
    """The resource already exists.

    Raised by a create-only handler after the whole component has been
    processed, when at least one desired object was already present.
    """


class ConflictError(ClusterAPIError):
    """The write was rejected because its resourceVersion was stale."""


class AlreadyOwnedError(KubeConvergeError):
    """The object already has a controlling owner other than the one being set."""

    def __init__(self, identity: ResourceIdentity, owner: str, existing: str) -> None:
        super().__init__(f"{identity} is already controlled by {existing}, cannot set controller {owner}")
        self.identity = identity
        self.owner = owner
        self.existing = existing
