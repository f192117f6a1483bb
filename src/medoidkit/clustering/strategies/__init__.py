"""Clustering strategies over keyed vectors."""

from .base import ClusteringResult, ClusteringStrategy
from .kmedoids import KMedoidsStrategy

__all__ = [
    "ClusteringStrategy",
    "ClusteringResult",
    "KMedoidsStrategy",
    "STRATEGIES",
    "get_strategy",
]

# Strategy registry for easy lookup
STRATEGIES = {
    "kmedoids": KMedoidsStrategy,
}


def get_strategy(name: str, **params) -> ClusteringStrategy:
    """
    Get a clustering strategy by name.

    Args:
        name: Strategy name ('kmedoids')
        **params: Parameters to pass to the strategy

    Returns:
        Initialized clustering strategy

    Raises:
        ValueError: If strategy name is not recognized
    """
    if name not in STRATEGIES:
        raise ValueError(
            f"Unknown clustering strategy: {name}. "
            f"Available strategies: {list(STRATEGIES.keys())}"
        )

    strategy_class = STRATEGIES[name]
    return strategy_class(**params)
