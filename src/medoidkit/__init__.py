"""
medoidkit: k-d tree spatial index and K-Medoids clustering
"""

__version__ = "0.1.0"

from medoidkit.clustering import (
    KMedoids,
    KMedoidsDataType,
    KMedoidsResult,
    KMedoidsState,
    KMedoidsStrategy,
)
from medoidkit.config import (
    MedoidkitConfig,
    get_default_config,
    load_config,
    validate_config,
)
from medoidkit.container import KDNode, KDTree
from medoidkit.errors import (
    DimensionalityError,
    InvalidConfigurationError,
    MedoidkitError,
)
from medoidkit.utils.metric import DistanceMetric, MetricType, distance_metric_factory

__all__ = [
    # Spatial index
    "KDNode",
    "KDTree",
    # Clustering
    "KMedoids",
    "KMedoidsResult",
    "KMedoidsDataType",
    "KMedoidsState",
    "KMedoidsStrategy",
    # Metrics
    "DistanceMetric",
    "MetricType",
    "distance_metric_factory",
    # Errors
    "MedoidkitError",
    "InvalidConfigurationError",
    "DimensionalityError",
    # Configuration
    "MedoidkitConfig",
    "load_config",
    "get_default_config",
    "validate_config",
]
