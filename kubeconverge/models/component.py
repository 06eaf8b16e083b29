"""Component abstraction: what the reconcile loop hands to the handler."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field

from kubeconverge.models.resources import DesiredObject, Manifest, OSType, OwnershipMode

DesiredEntry = Manifest | DesiredObject


class Component(ABC):
    """A logical unit of rendered resources.

    ``objects()`` returns the ordered desired list (order matters: a Namespace
    must come before the objects that live in it) and the obsolete list.
    """

    @abstractmethod
    def objects(self) -> tuple[list[DesiredEntry], list[Manifest]]:
        """Return ``(to_create, to_delete)``."""

    @abstractmethod
    def ready(self) -> bool:
        """False defers the whole component until a later reconcile."""

    def supported_os_type(self) -> OSType:
        return OSType.ANY


@dataclass
class StaticComponent(Component):
    """Component assembled from plain lists."""

    to_create: list[DesiredEntry] = field(default_factory=list)
    to_delete: list[Manifest] = field(default_factory=list)
    os_type: OSType = OSType.ANY
    ready_when: Callable[[], bool] = field(default=lambda: True)

    def objects(self) -> tuple[list[DesiredEntry], list[Manifest]]:
        return self.to_create, self.to_delete

    def ready(self) -> bool:
        return self.ready_when()

    def supported_os_type(self) -> OSType:
        return self.os_type


def as_desired(entry: DesiredEntry) -> DesiredObject:
    """Normalise a to_create entry; bare manifests are controller-owned."""
    if isinstance(entry, DesiredObject):
        return entry
    return DesiredObject(obj=entry, ownership=OwnershipMode.CONTROLLER)


class ReadyFlag:
    """Boolean shared between threads, marked ready once and read many times.

    Typical use is as a component readiness predicate, e.g. "the watch on
    the Tier CRD has been established".
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ready = False

    def is_ready(self) -> bool:
        with self._lock:
            return self._ready

    def mark_as_ready(self) -> None:
        with self._lock:
            self._ready = True
