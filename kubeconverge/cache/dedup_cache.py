"""Process-wide deduplication cache.

Maps a ResourceIdentity to the snapshot of the last object this process wrote
(or observed as unchanged) plus the generation the server reported for it.
The handler consults it before every update so that an unchanged desired
object costs one GET and no write.

An entry is only trustworthy while nobody else has touched the object, so
it is dropped on delete, on NotFound, and on any write whose outcome is
unknown. A stale entry that wrongly says "unchanged" would silence all future
writes to that resource.

Thread-safe: one lock guards the map and no operation does I/O, so the
cache can be shared by handlers on any number of tasks or threads.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

from kubeconverge.models.resources import Manifest, ResourceIdentity, generation_of, objects_equal, snapshot_of
from kubeconverge.observability.logging import get_logger

_log = get_logger("cache.dedup")


@dataclass(frozen=True)
class CacheEntry:
    """Last-applied snapshot and the generation it was written at."""

    snapshot: Manifest
    generation: int


class DeduplicationCache:
    """Identity -> CacheEntry map guarded by a single lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[ResourceIdentity, CacheEntry] = {}

    def get(self, identity: ResourceIdentity) -> CacheEntry | None:
        with self._lock:
            return self._entries.get(identity)

    def set(self, identity: ResourceIdentity, obj: Manifest, generation: int) -> None:
        """Store a snapshot of *obj*, overwriting any previous entry."""
        entry = CacheEntry(snapshot=snapshot_of(obj), generation=generation)
        with self._lock:
            self._entries[identity] = entry

    def delete(self, identity: ResourceIdentity) -> None:
        """Invalidate *identity*. Removing an absent entry is a no-op."""
        with self._lock:
            self._entries.pop(identity, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, identity: object) -> bool:
        with self._lock:
            return identity in self._entries

    def needs_update(self, identity: ResourceIdentity, obj: Manifest) -> bool:
        """Decide whether *obj* (merged desired state) must be written.

        *obj* carries the live generation copied from the current object.
        """
        entry = self.get(identity)
        if entry is None:
            _log.debug("dedup_miss", object=identity)
            return True

        if entry.generation < generation_of(obj):
            _log.debug(
                "dedup_generation_drift",
                object=identity,
                cached_generation=entry.generation,
                live_generation=generation_of(obj),
            )
            return True

        if objects_equal(entry.snapshot, snapshot_of(obj)):
            return False

        _log.debug("dedup_desired_changed", object=identity)
        return True
