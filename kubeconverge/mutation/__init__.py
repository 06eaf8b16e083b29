"""Mutation pipeline applied to desired objects before every write."""

from kubeconverge.mutation.pipeline import (
    STEPS,
    TLS_CIPHERS_ENV_VAR_NAME,
    MutationContext,
    ensure_os_scheduling,
    ensure_tls_ciphers,
    mutate,
    order_volume_mounts,
    order_volumes,
    set_image_pull_policy,
    set_owner_reference,
    set_probe_timeouts,
    set_standard_labels,
)

__all__ = [
    "STEPS",
    "TLS_CIPHERS_ENV_VAR_NAME",
    "MutationContext",
    "ensure_os_scheduling",
    "ensure_tls_ciphers",
    "mutate",
    "order_volume_mounts",
    "order_volumes",
    "set_image_pull_policy",
    "set_owner_reference",
    "set_probe_timeouts",
    "set_standard_labels",
]
