"""
medoidkit clustering module

Partition-based clustering around medoids (PAM). ``KMedoids`` works on
index-addressed datasets or precomputed distance matrices; the strategies
in ``medoidkit.clustering.strategies`` wrap it for keyed vectors.

Example Usage:
    from medoidkit.clustering import KMedoids

    result = KMedoids([0, 2]).process(points)
    print(result.labels, result.medoids)
"""

from .cluster_types import (
    ClusterAssignment,
    KMedoidsDataType,
    KMedoidsResult,
    KMedoidsState,
)
from .kmedoids import (
    DEFAULT_ITERMAX,
    DEFAULT_PAIRWISE_CACHE_LIMIT,
    DEFAULT_TOLERANCE,
    NOTHING_TO_SWAP,
    KMedoids,
)
from .strategies import (
    STRATEGIES,
    ClusteringResult,
    ClusteringStrategy,
    KMedoidsStrategy,
    get_strategy,
)

__all__ = [
    # Optimizer
    "KMedoids",
    "KMedoidsResult",
    "KMedoidsDataType",
    "KMedoidsState",
    "ClusterAssignment",
    "DEFAULT_TOLERANCE",
    "DEFAULT_ITERMAX",
    "DEFAULT_PAIRWISE_CACHE_LIMIT",
    "NOTHING_TO_SWAP",
    # Strategies
    "ClusteringStrategy",
    "ClusteringResult",
    "KMedoidsStrategy",
    "STRATEGIES",
    "get_strategy",
]
