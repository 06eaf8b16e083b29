"""ComponentHandler: converges one component's objects onto the cluster.

For every desired object, in the order the component lists them:

    mutate -> GET -> (missing)  create, unless the namespace is terminating
                  -> (present)  merge_metadata + strategy.merge
                                  no_change -> nothing
                                  recreate  -> delete, then create
                                  update    -> update, if the dedup cache says so

An optimistic-concurrency conflict restarts the object from the mutate step,
at most ``MAX_WRITE_ATTEMPTS`` times in total. Any other failure aborts the
call: later objects may depend on earlier ones.

Then obsolete objects are deleted, tracked workloads are reported, and the
status collaborator is told it may start monitoring.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING

from kubeconverge.errors import AlreadyExistsError, ConflictError, NotFoundError
from kubeconverge.merge import KindStrategy, StrategyRegistry, default_registry, merge_metadata
from kubeconverge.models.component import Component, as_desired
from kubeconverge.models.resources import (
    DesiredObject,
    Manifest,
    MergeAction,
    OSType,
    OwnershipMode,
    ResourceIdentity,
    WorkloadKind,
    generation_of,
    identity_of,
    is_terminating,
    reset_for_create,
)
from kubeconverge.mutation import MutationContext, mutate
from kubeconverge.observability.logging import get_logger
from kubeconverge.observability.metrics import (
    component_reconciles_total,
    conflict_retries_total,
    dedup_skips_total,
    object_writes_total,
)
from kubeconverge.engine.status import StatusReporter, report_added, report_removed

if TYPE_CHECKING:
    import structlog

    from kubeconverge.cache import DeduplicationCache
    from kubeconverge.client import ClusterClient, InstallationLookup

MAX_WRITE_ATTEMPTS = 2

# Objects annotated with this (value "true") are left exactly as they are on the cluster.
IGNORE_ANNOTATION = "kubeconverge.io/ignore"


def is_ignored(obj: Manifest) -> bool:
    annotations = (obj.get("metadata") or {}).get("annotations") or {}
    return annotations.get(IGNORE_ANNOTATION) == "true"


class ComponentHandler:
    """Creates, updates and deletes the objects of a component.

    Args:
        client:       Cluster API client.
        cache:        The process-wide deduplication cache, shared by all handlers.
        owner:        Manifest of the custom resource that owns the objects, or
                      None to write them without owner references (e.g. CRDs).
        installation: Source of the TLS cipher suites injected into workloads.
        registry:     Kind strategy table; the built-in table by default.
    """

    def __init__(
        self,
        client: ClusterClient,
        cache: DeduplicationCache,
        owner: Manifest | None = None,
        installation: InstallationLookup | None = None,
        registry: StrategyRegistry | None = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._owner = owner
        self._installation = installation
        self._registry = registry or default_registry
        self._create_only = False
        self._log = get_logger("engine.handler")

    def set_create_only(self) -> None:
        """Only create missing objects from now on; never modify existing ones.

        When some desired objects already exist and nothing worse goes wrong,
        ``create_or_update_or_delete`` raises ``AlreadyExistsError`` after the
        whole component has been processed.
        """
        self._create_only = True

    @property
    def create_only(self) -> bool:
        return self._create_only

    async def create_or_update_or_delete(
        self,
        component: Component,
        status: StatusReporter | None = None,
    ) -> None:
        log = self._log.bind(component=type(component).__name__)
        if not component.ready():
            log.info("component_not_ready_skipping")
            component_reconciles_total.labels(result="not_ready").inc()
            return

        log.debug("component_reconciling")
        try:
            await self._reconcile(component, status, log)
        except AlreadyExistsError:
            component_reconciles_total.labels(result="already_exists").inc()
            raise
        except Exception:
            component_reconciles_total.labels(result="error").inc()
            raise
        component_reconciles_total.labels(result="ok").inc()
        log.debug("component_reconciled")

    async def _reconcile(
        self,
        component: Component,
        status: StatusReporter | None,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        to_create, to_delete = component.objects()
        os_type = component.supported_os_type()

        tracked: dict[WorkloadKind, list[ResourceIdentity]] = {}
        already_exists: AlreadyExistsError | None = None

        for entry in to_create:
            desired = as_desired(entry)
            identity = identity_of(desired.obj)
            try:
                await self._apply_with_retry(desired, os_type, log)
            except AlreadyExistsError as exc:
                already_exists = exc

            workload = self._registry.for_identity(identity).workload
            if workload is not None:
                tracked.setdefault(workload, []).append(identity)

        if status is not None:
            report_added(status, tracked)

        for obj in to_delete:
            identity = identity_of(obj)
            try:
                await self._delete(identity, log)
            except NotFoundError:
                log.debug("object_vanished_during_delete", object=identity)
            except Exception as exc:
                log.error("object_delete_failed", object=identity, error=str(exc))
                raise

            # Gone either way: stop tracking it even if someone else deleted it.
            workload = self._registry.for_identity(identity).workload
            if status is not None and workload is not None:
                report_removed(status, workload, identity)

        if status is not None:
            status.ready_to_monitor()

        if already_exists is not None:
            raise already_exists

    async def _apply_with_retry(
        self,
        desired: DesiredObject,
        os_type: OSType,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        identity = identity_of(desired.obj)
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            try:
                # Fresh copy per attempt: mutations from a failed attempt must not leak.
                await self._create_or_update_object(copy.deepcopy(desired.obj), desired.ownership, os_type, log)
                return
            except AlreadyExistsError:
                raise
            except ConflictError as exc:
                if attempt >= MAX_WRITE_ATTEMPTS:
                    log.error("object_conflict_retries_exhausted", object=identity, error=str(exc))
                    raise
                conflict_retries_total.labels(kind=identity.kind).inc()
                log.info("object_conflict_retrying", object=identity, attempt=attempt, error=str(exc))
            except Exception as exc:
                log.error("object_create_or_update_failed", object=identity, error=str(exc))
                raise

    async def _create_or_update_object(
        self,
        obj: Manifest,
        ownership: OwnershipMode,
        os_type: OSType,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        strategy = self._registry.for_object(obj)
        ciphers = ""
        if strategy.takes_tls_ciphers and self._installation is not None:
            ciphers = await self._installation.tls_cipher_suites()

        mutate(
            obj,
            MutationContext(
                owner=self._owner,
                ownership=ownership,
                os_type=os_type,
                tls_cipher_suites=ciphers,
                registry=self._registry,
            ),
        )

        identity = identity_of(obj)
        obj_log = log.bind(kind=identity.kind, namespace=identity.namespace, name=identity.name)

        try:
            current = await self._client.get(identity)
        except NotFoundError:
            self._cache.delete(identity)
            if await self._namespace_terminating(identity, obj_log):
                obj_log.info("namespace_terminating_skipping_create")
                return
            obj_log.debug("object_missing_creating")
            await self._create(obj, identity, strategy, ownership)
            return
        except Exception:
            self._cache.delete(identity)
            raise

        if self._create_only:
            obj_log.info("create_only_ignoring_existing_object")
            raise AlreadyExistsError(identity, "already exists and handler is create-only")

        if is_ignored(current):
            obj_log.info("object_ignored_by_annotation")
            return

        merged = merge_metadata(obj, current, ownership)
        outcome = strategy.merge(merged, current)

        if outcome.action is MergeAction.NO_CHANGE or outcome.obj is None:
            obj_log.debug("object_unchanged")
            return
        if outcome.action is MergeAction.RECREATE:
            obj_log.info("object_immutable_field_changed_recreating")
            await self._recreate(outcome.obj, identity, strategy, ownership, obj_log)
            return
        await self._update(outcome.obj, identity, obj_log)

    async def _namespace_terminating(self, identity: ResourceIdentity, log: structlog.stdlib.BoundLogger) -> bool:
        if not identity.namespace:
            return False
        ns_identity = ResourceIdentity(api_version="v1", kind="Namespace", namespace="", name=identity.namespace)
        try:
            namespace = await self._client.get(ns_identity)
        except NotFoundError:
            # Let the create go ahead; the API server reports the missing namespace.
            return False
        except Exception as exc:
            log.error("namespace_lookup_failed", namespace_object=ns_identity, error=str(exc))
            raise
        return is_terminating(namespace)

    async def _create(
        self,
        obj: Manifest,
        identity: ResourceIdentity,
        strategy: KindStrategy,
        ownership: OwnershipMode,
    ) -> None:
        submitted = copy.deepcopy(obj)
        try:
            created = await self._client.create(obj)
        except BaseException:
            # Outcome unknown (including cancellation): never cache it.
            self._cache.delete(identity)
            raise
        self._cache.set(
            identity,
            _converged_form(submitted, created, strategy, ownership),
            generation_of(created or {}),
        )
        object_writes_total.labels(operation="create", kind=identity.kind).inc()

    async def _update(self, obj: Manifest, identity: ResourceIdentity, log: structlog.stdlib.BoundLogger) -> None:
        if not self._cache.needs_update(identity, obj):
            dedup_skips_total.labels(kind=identity.kind).inc()
            log.debug("object_up_to_date_skipping_update")
            return

        log.debug("object_updating")
        submitted = copy.deepcopy(obj)
        try:
            updated = await self._client.update(obj)
        except BaseException:
            self._cache.delete(identity)
            raise
        self._cache.set(identity, submitted, generation_of(updated or {}))
        object_writes_total.labels(operation="update", kind=identity.kind).inc()

    async def _delete(self, identity: ResourceIdentity, log: structlog.stdlib.BoundLogger) -> None:
        """Delete *identity* if it exists.

        Any error from the existence check other than NotFound propagates
        without a delete being sent. A NotFoundError from the delete call
        itself propagates too; callers decide whether that is tolerable.
        """
        try:
            await self._client.get(identity)
        except NotFoundError:
            log.debug("object_absent_skipping_delete", object=identity)
            self._cache.delete(identity)
            return
        except Exception:
            self._cache.delete(identity)
            raise

        try:
            await self._client.delete(identity)
        finally:
            self._cache.delete(identity)
        object_writes_total.labels(operation="delete", kind=identity.kind).inc()

    async def _recreate(
        self,
        obj: Manifest,
        identity: ResourceIdentity,
        strategy: KindStrategy,
        ownership: OwnershipMode,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        # Not atomic: the object may be recreated by someone else between the delete and the create.
        await self._delete(identity, log)
        reset_for_create(obj)
        await self._create(obj, identity, strategy, ownership)
        object_writes_total.labels(operation="recreate", kind=identity.kind).inc()


def _converged_form(
    submitted: Manifest,
    created: Manifest | None,
    strategy: KindStrategy,
    ownership: OwnershipMode,
) -> Manifest:
    """What the next reconcile of the unchanged *submitted* object merges to.

    The server fills in fields on create (allocated clusterIP, default
    replicas, added labels) that the merge then carries back; caching the
    submitted object alone would make the next reconcile look like a change.
    """
    if not created:
        return submitted
    merged = merge_metadata(submitted, created, ownership)
    outcome = strategy.merge(merged, created)
    return outcome.obj if outcome.obj is not None else merged
