"""Utility functions for medoidkit"""

from medoidkit.utils.metric import (
    DistanceMetric,
    MetricType,
    as_point_matrix,
    canberra_distance,
    chebyshev_distance,
    chi_square_distance,
    distance_metric_factory,
    euclidean_distance,
    euclidean_distance_square,
    get_metric,
    gower_distance,
    manhattan_distance,
    minkowski_distance,
)

__all__ = [
    "DistanceMetric",
    "MetricType",
    "distance_metric_factory",
    "get_metric",
    "as_point_matrix",
    "euclidean_distance",
    "euclidean_distance_square",
    "manhattan_distance",
    "chebyshev_distance",
    "minkowski_distance",
    "canberra_distance",
    "chi_square_distance",
    "gower_distance",
]
