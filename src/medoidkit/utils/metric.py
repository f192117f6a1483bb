"""Distance metrics between points.

Every metric takes two points of equal length and returns a non-negative
float. Points of unequal length raise ``DimensionalityError``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Optional, Sequence, Union

import numpy as np
from scipy.spatial.distance import cdist

from ..errors import DimensionalityError

Point = Union[Sequence[float], np.ndarray]


def _as_pair(a: Point, b: Point) -> tuple[np.ndarray, np.ndarray]:
    """Convert two points to float arrays and check their lengths match."""
    a_flat = np.asarray(a, dtype=np.float64).ravel()
    b_flat = np.asarray(b, dtype=np.float64).ravel()
    if a_flat.shape[0] != b_flat.shape[0]:
        raise DimensionalityError(
            f"Points have different dimensions: {a_flat.shape[0]} != {b_flat.shape[0]}"
        )
    return a_flat, b_flat


def euclidean_distance(a: Point, b: Point) -> float:
    """Euclidean (L2) distance."""
    a_flat, b_flat = _as_pair(a, b)
    return float(np.sqrt(np.sum((a_flat - b_flat) ** 2)))


def euclidean_distance_square(a: Point, b: Point) -> float:
    """Squared Euclidean distance (no square root)."""
    a_flat, b_flat = _as_pair(a, b)
    return float(np.sum((a_flat - b_flat) ** 2))


def manhattan_distance(a: Point, b: Point) -> float:
    """Manhattan (L1, city block) distance."""
    a_flat, b_flat = _as_pair(a, b)
    return float(np.sum(np.abs(a_flat - b_flat)))


def chebyshev_distance(a: Point, b: Point) -> float:
    """Chebyshev (L-infinity) distance."""
    a_flat, b_flat = _as_pair(a, b)
    if a_flat.size == 0:
        return 0.0
    return float(np.max(np.abs(a_flat - b_flat)))


def minkowski_distance(a: Point, b: Point, degree: float = 2.0) -> float:
    """Minkowski distance of the given degree."""
    a_flat, b_flat = _as_pair(a, b)
    return float(np.sum(np.abs(a_flat - b_flat) ** degree) ** (1.0 / degree))


def canberra_distance(a: Point, b: Point) -> float:
    """Canberra distance.

    Coordinates where both values are zero contribute nothing.
    """
    a_flat, b_flat = _as_pair(a, b)
    numerator = np.abs(a_flat - b_flat)
    denominator = np.abs(a_flat) + np.abs(b_flat)
    mask = denominator != 0
    return float(np.sum(numerator[mask] / denominator[mask]))


def chi_square_distance(a: Point, b: Point) -> float:
    """Chi-square distance ``sum((a - b)^2 / (|a| + |b|))``.

    Coordinates where both values are zero contribute nothing.
    """
    a_flat, b_flat = _as_pair(a, b)
    numerator = (a_flat - b_flat) ** 2
    denominator = np.abs(a_flat) + np.abs(b_flat)
    mask = denominator != 0
    return float(np.sum(numerator[mask] / denominator[mask]))


def gower_distance(a: Point, b: Point, max_range: Point) -> float:
    """Gower distance for numeric features.

    Args:
        a: First point
        b: Second point
        max_range: Range of each feature over the dataset; features with a
            zero range contribute nothing

    Returns:
        Mean of range-normalized absolute differences.
    """
    a_flat, b_flat = _as_pair(a, b)
    _, range_flat = _as_pair(a_flat, max_range)
    if a_flat.size == 0:
        return 0.0
    mask = range_flat != 0
    return float(np.sum(np.abs(a_flat - b_flat)[mask] / range_flat[mask]) / a_flat.size)


class MetricType(Enum):
    """Distance metrics supported by ``DistanceMetric``."""

    EUCLIDEAN = "euclidean"
    EUCLIDEAN_SQUARE = "euclidean_square"
    MANHATTAN = "manhattan"
    CHEBYSHEV = "chebyshev"
    MINKOWSKI = "minkowski"
    CANBERRA = "canberra"
    CHI_SQUARE = "chi_square"
    GOWER = "gower"
    USER_DEFINED = "user_defined"


# scipy names for metrics that cdist implements natively
_SCIPY_METRICS = {
    MetricType.EUCLIDEAN: "euclidean",
    MetricType.EUCLIDEAN_SQUARE: "sqeuclidean",
    MetricType.MANHATTAN: "cityblock",
    MetricType.CHEBYSHEV: "chebyshev",
    MetricType.MINKOWSKI: "minkowski",
    MetricType.CANBERRA: "canberra",
}


class DistanceMetric:
    """
    Callable distance metric ``(Point, Point) -> float``.

    Wraps one of the built-in metrics (or a user function) together with its
    arguments so it can be passed around as a single value.

    Example:
        >>> metric = distance_metric_factory.manhattan()
        >>> metric([0.0, 0.0], [1.0, 2.0])
        3.0
    """

    def __init__(
        self,
        metric_type: MetricType,
        func: Optional[Callable[[Point, Point], float]] = None,
        **arguments: Any,
    ):
        """
        Initialize a distance metric.

        Args:
            metric_type: Which metric to compute
            func: Distance function, required for ``MetricType.USER_DEFINED``
            **arguments: Metric arguments (``degree`` for Minkowski,
                ``max_range`` for Gower)

        Raises:
            ValueError: If a required function or argument is missing
        """
        self.type = metric_type
        self.arguments = arguments

        if metric_type == MetricType.USER_DEFINED:
            if func is None:
                raise ValueError("User-defined metric requires a distance function")
            self._func = func
        elif metric_type == MetricType.MINKOWSKI:
            degree = float(arguments.setdefault("degree", 2.0))
            if degree <= 0:
                raise ValueError(f"Minkowski degree must be > 0, got {degree}")
            self._func = lambda a, b: minkowski_distance(a, b, degree)
        elif metric_type == MetricType.GOWER:
            if "max_range" not in arguments:
                raise ValueError("Gower metric requires 'max_range'")
            max_range = np.asarray(arguments["max_range"], dtype=np.float64)
            self._func = lambda a, b: gower_distance(a, b, max_range)
        else:
            self._func = {
                MetricType.EUCLIDEAN: euclidean_distance,
                MetricType.EUCLIDEAN_SQUARE: euclidean_distance_square,
                MetricType.MANHATTAN: manhattan_distance,
                MetricType.CHEBYSHEV: chebyshev_distance,
                MetricType.CANBERRA: canberra_distance,
                MetricType.CHI_SQUARE: chi_square_distance,
            }[metric_type]

    def __call__(self, a: Point, b: Point) -> float:
        return self._func(a, b)

    def __repr__(self) -> str:
        if self.arguments:
            return f"DistanceMetric({self.type.value}, {self.arguments})"
        return f"DistanceMetric({self.type.value})"

    @property
    def is_euclidean_family(self) -> bool:
        """True when nearest neighbors under this metric match Euclidean ones."""
        return self.type in (MetricType.EUCLIDEAN, MetricType.EUCLIDEAN_SQUARE)

    def pairwise(self, data: Union[Sequence[Point], np.ndarray]) -> np.ndarray:
        """
        Compute the full pairwise distance matrix of a dataset.

        Args:
            data: Sequence of equal-length points

        Returns:
            Symmetric array of shape (n, n) with a zero diagonal

        Raises:
            DimensionalityError: If points have different lengths
        """
        matrix = as_point_matrix(data)
        if matrix.shape[0] == 0:
            return np.zeros((0, 0), dtype=np.float64)

        scipy_name = _SCIPY_METRICS.get(self.type)
        if scipy_name == "minkowski":
            return cdist(matrix, matrix, metric="minkowski", p=self.arguments["degree"])
        if scipy_name is not None:
            return cdist(matrix, matrix, metric=scipy_name)
        return cdist(matrix, matrix, metric=self._func)


def as_point_matrix(data: Union[Sequence[Point], np.ndarray]) -> np.ndarray:
    """
    Convert a dataset to a 2-D float array.

    Raises:
        DimensionalityError: If rows have different lengths
    """
    if isinstance(data, np.ndarray) and data.ndim == 2:
        return data.astype(np.float64, copy=False)

    rows = [np.asarray(point, dtype=np.float64).ravel() for point in data]
    if not rows:
        return np.zeros((0, 0), dtype=np.float64)

    lengths = {row.shape[0] for row in rows}
    if len(lengths) > 1:
        raise DimensionalityError(
            f"Points have inconsistent dimensions: {sorted(lengths)}"
        )
    return np.vstack(rows)


class distance_metric_factory:
    """Constructors for the built-in distance metrics."""

    @staticmethod
    def euclidean() -> DistanceMetric:
        return DistanceMetric(MetricType.EUCLIDEAN)

    @staticmethod
    def euclidean_square() -> DistanceMetric:
        return DistanceMetric(MetricType.EUCLIDEAN_SQUARE)

    @staticmethod
    def manhattan() -> DistanceMetric:
        return DistanceMetric(MetricType.MANHATTAN)

    @staticmethod
    def chebyshev() -> DistanceMetric:
        return DistanceMetric(MetricType.CHEBYSHEV)

    @staticmethod
    def minkowski(degree: float = 2.0) -> DistanceMetric:
        return DistanceMetric(MetricType.MINKOWSKI, degree=degree)

    @staticmethod
    def canberra() -> DistanceMetric:
        return DistanceMetric(MetricType.CANBERRA)

    @staticmethod
    def chi_square() -> DistanceMetric:
        return DistanceMetric(MetricType.CHI_SQUARE)

    @staticmethod
    def gower(max_range: Point) -> DistanceMetric:
        return DistanceMetric(MetricType.GOWER, max_range=max_range)

    @staticmethod
    def user_defined(func: Callable[[Point, Point], float]) -> DistanceMetric:
        return DistanceMetric(MetricType.USER_DEFINED, func=func)


def get_metric(name: str, **arguments: Any) -> DistanceMetric:
    """
    Get a built-in metric by name.

    Args:
        name: Metric name (a ``MetricType`` value other than "user_defined")
        **arguments: Metric arguments

    Raises:
        ValueError: If the name is not a known built-in metric
    """
    try:
        metric_type = MetricType(name)
    except ValueError:
        raise ValueError(
            f"Unknown distance metric: {name}. "
            f"Available metrics: {[m.value for m in MetricType if m != MetricType.USER_DEFINED]}"
        ) from None
    if metric_type == MetricType.USER_DEFINED:
        raise ValueError("User-defined metrics must be built with a distance function")
    return DistanceMetric(metric_type, **arguments)
