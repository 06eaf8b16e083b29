"""Cache layer for kubeconverge.

Submodules:
    dedup_cache -- Identity-keyed last-applied snapshots used to skip redundant writes.
"""

from kubeconverge.cache.dedup_cache import CacheEntry, DeduplicationCache

__all__ = ["CacheEntry", "DeduplicationCache"]
