"""Configuration loading from environment variables."""

from __future__ import annotations

import os
import re

from kubeconverge.models.config import (
    InstallationConfig,
    KubeClientConfig,
    KubeConvergeConfig,
    LogConfig,
)

_API_VERSION_RE = re.compile(r"^([a-z0-9]([-a-z0-9.]*[a-z0-9])?/)?v[0-9]+((alpha|beta)[0-9]+)?$")


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBECONVERGE_{key}", default)


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_api_version(value: str) -> str:
    if not _API_VERSION_RE.match(value):
        raise ValueError(f"Invalid apiVersion: {value}")
    return value


def _validate_name(value: str) -> str:
    if not value:
        raise ValueError("Installation name must not be empty")
    return value


def load_config() -> KubeConvergeConfig:
    """Load configuration from KUBECONVERGE_* environment variables."""
    return KubeConvergeConfig(
        installation=InstallationConfig(
            api_version=_validate_api_version(_env("INSTALLATION_API_VERSION", "operator.tigera.io/v1")),
            kind=_validate_name(_env("INSTALLATION_KIND", "Installation")),
            name=_validate_name(_env("INSTALLATION_NAME", "default")),
        ),
        kube=KubeClientConfig(
            context=_env("KUBECONFIG_CONTEXT", ""),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
