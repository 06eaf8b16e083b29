"""Structured logging configuration using structlog.

Events carry the logger's ``component`` (e.g. ``engine.handler``) and, where
an object is involved, the object identity rendered as ``Kind/namespace/name``
together with its ``api_version``.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from kubeconverge.models.resources import ResourceIdentity

# Keys whose ResourceIdentity values also contribute an api_version field.
_OBJECT_KEYS = ("object",)


def render_identities(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Replace ResourceIdentity values with their string form.

    For the ``object`` key the API version is kept as ``api_version`` so
    same-named kinds from different groups stay distinguishable in the logs.
    """
    for key, value in list(event_dict.items()):
        if not isinstance(value, ResourceIdentity):
            continue
        event_dict[key] = str(value)
        if key in _OBJECT_KEYS:
            event_dict.setdefault("api_version", value.api_version)
    return event_dict


def setup_logging(level: str = "info") -> None:
    """Configure structlog for JSON output to stderr."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            render_identities,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]
