"""Status collaborator boundary.

The handler only reports which workload objects it created or removed; how
those identities become an availability signal is the reporter's concern.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from kubeconverge.models.resources import ResourceIdentity, WorkloadKind


class StatusReporter(ABC):
    """Receives tracked workload identities from the handler."""

    @abstractmethod
    def add_deployments(self, identities: list[ResourceIdentity]) -> None: ...

    @abstractmethod
    def add_daemonsets(self, identities: list[ResourceIdentity]) -> None: ...

    @abstractmethod
    def add_statefulsets(self, identities: list[ResourceIdentity]) -> None: ...

    @abstractmethod
    def add_cronjobs(self, identities: list[ResourceIdentity]) -> None: ...

    @abstractmethod
    def remove_deployments(self, identity: ResourceIdentity) -> None: ...

    @abstractmethod
    def remove_daemonsets(self, identity: ResourceIdentity) -> None: ...

    @abstractmethod
    def remove_statefulsets(self, identity: ResourceIdentity) -> None: ...

    @abstractmethod
    def remove_cronjobs(self, identity: ResourceIdentity) -> None: ...

    @abstractmethod
    def ready_to_monitor(self) -> None:
        """All of the component's objects have been submitted."""


def report_added(status: StatusReporter, tracked: dict[WorkloadKind, list[ResourceIdentity]]) -> None:
    """Forward non-empty tracked lists to the matching ``add_*`` method."""
    adders = {
        WorkloadKind.DAEMONSET: status.add_daemonsets,
        WorkloadKind.DEPLOYMENT: status.add_deployments,
        WorkloadKind.STATEFULSET: status.add_statefulsets,
        WorkloadKind.CRONJOB: status.add_cronjobs,
    }
    for kind, add in adders.items():
        identities = tracked.get(kind)
        if identities:
            add(identities)


def report_removed(status: StatusReporter, kind: WorkloadKind, identity: ResourceIdentity) -> None:
    removers = {
        WorkloadKind.DAEMONSET: status.remove_daemonsets,
        WorkloadKind.DEPLOYMENT: status.remove_deployments,
        WorkloadKind.STATEFULSET: status.remove_statefulsets,
        WorkloadKind.CRONJOB: status.remove_cronjobs,
    }
    removers[kind](identity)
