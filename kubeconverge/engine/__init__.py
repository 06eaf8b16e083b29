"""Reconciliation engine.

Submodules:
    handler -- ComponentHandler: create, update, recreate and delete a component's objects.
    status  -- StatusReporter boundary for tracked workloads.
"""

from kubeconverge.engine.handler import IGNORE_ANNOTATION, MAX_WRITE_ATTEMPTS, ComponentHandler, is_ignored
from kubeconverge.engine.status import StatusReporter, report_added, report_removed

__all__ = [
    "IGNORE_ANNOTATION",
    "MAX_WRITE_ATTEMPTS",
    "ComponentHandler",
    "StatusReporter",
    "is_ignored",
    "report_added",
    "report_removed",
]
