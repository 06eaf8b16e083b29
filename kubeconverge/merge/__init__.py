"""Merge policy table.

Importing this package registers the built-in kind strategies in the default
registry. Additional kinds are added with ``register_strategy``; nothing in
the handler or the mutation pipeline needs to change for them.

Submodules:
    base       -- KindStrategy, StrategyRegistry, merge_metadata (general merge).
    strategies -- Per-kind merge and pod-spec location rules.
"""

from kubeconverge.merge.base import (
    DefaultStrategy,
    KindStrategy,
    StrategyRegistry,
    default_registry,
    merge_metadata,
    merge_owner_references,
    register_strategy,
    strategy_for,
)
from kubeconverge.merge.strategies import register_builtin_strategies

register_builtin_strategies(default_registry)

__all__ = [
    "DefaultStrategy",
    "KindStrategy",
    "StrategyRegistry",
    "default_registry",
    "merge_metadata",
    "merge_owner_references",
    "register_builtin_strategies",
    "register_strategy",
    "strategy_for",
]
