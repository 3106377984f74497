"""
Pool strategy factory and registry.
"""
import random
from typing import Optional

from leadops.schemas.routing import PoolStrategy
from .base import BaseStrategy
from .round_robin import RoundRobinStrategy
from .least_loaded import LeastLoadedStrategy
from .weighted import WeightedStrategy

# Registry of available strategies
STRATEGY_REGISTRY = {
    PoolStrategy.ROUND_ROBIN: RoundRobinStrategy,
    PoolStrategy.LEAST_LOADED: LeastLoadedStrategy,
    PoolStrategy.WEIGHTED: WeightedStrategy,
}

_missing = set(PoolStrategy) - set(STRATEGY_REGISTRY)
if _missing:
    raise RuntimeError(f"Pool strategies without an implementation: {sorted(s.value for s in _missing)}")


def get_strategy(
    strategy,
    cursor_store=None,
    rng: Optional[random.Random] = None,
) -> BaseStrategy:
    """
    Factory function to create a pool selection strategy.

    Args:
        strategy: PoolStrategy or its string value
        cursor_store: Cursor store for round-robin pools
        rng: Random source for weighted pools

    Raises:
        ValueError: If strategy not found in registry
    """
    try:
        strategy = PoolStrategy(strategy)
    except ValueError:
        raise ValueError(
            f"Unknown pool strategy: {strategy}. "
            f"Available: {[s.value for s in STRATEGY_REGISTRY]}"
        )

    if strategy == PoolStrategy.ROUND_ROBIN:
        if cursor_store is None:
            raise ValueError("round_robin pools need a cursor store")
        return RoundRobinStrategy(cursor_store)
    if strategy == PoolStrategy.WEIGHTED:
        return WeightedStrategy(rng)
    return STRATEGY_REGISTRY[strategy]()
