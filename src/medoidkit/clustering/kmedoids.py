"""
K-Medoids clustering by Partitioning Around Medoids (PAM).

Each iteration assigns every point to its nearest medoid, then looks for the
single (medoid, non-medoid) exchange that lowers the total distance of points
to their medoids the most. The run stops when no exchange helps, when the
largest per-cluster change drops to the tolerance, or after ``itermax``
iterations.
"""

import logging
import math
import numbers
from typing import Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from ..config import MedoidkitConfig, load_config
from ..errors import DimensionalityError, InvalidConfigurationError
from ..utils.metric import DistanceMetric, Point, as_point_matrix, distance_metric_factory, get_metric
from .cluster_types import ClusterAssignment, KMedoidsDataType, KMedoidsResult, KMedoidsState

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 0.0001
DEFAULT_ITERMAX = 100
DEFAULT_PAIRWISE_CACHE_LIMIT = 4096

# Swap cost meaning "no exchange improves the clustering"
NOTHING_TO_SWAP = 0.0

# Distances from every point of the dataset to the point with the given index
DistanceCalculator = Callable[[int], np.ndarray]

Metric = Callable[[Point, Point], float]


class KMedoids:
    """
    K-Medoids optimizer.

    The instance holds only its parameters between runs; the dataset and the
    result passed to ``process`` are borrowed for the duration of the call.

    Example:
        >>> points = [[0.0, 0.0], [0.0, 1.0], [8.0, 8.0], [8.0, 9.0]]
        >>> result = KMedoids([0, 2]).process(points)
        >>> result.labels.tolist()
        [0, 0, 1, 1]
    """

    def __init__(
        self,
        initial_medoids: Sequence[int],
        tolerance: float = DEFAULT_TOLERANCE,
        itermax: int = DEFAULT_ITERMAX,
        metric: Optional[Metric] = None,
        pairwise_cache_limit: int = DEFAULT_PAIRWISE_CACHE_LIMIT,
        data_type: Union[KMedoidsDataType, str] = KMedoidsDataType.POINTS,
    ):
        """
        Initialize the optimizer.

        Args:
            initial_medoids: Dataset indices of the starting medoids; cluster
                ``i`` is represented by ``initial_medoids[i]``
            tolerance: Stop once the largest per-cluster change of summed
                distance is at most this value
            itermax: Maximum number of swap/assignment iterations
            metric: Distance between two points, squared Euclidean by default
            pairwise_cache_limit: For built-in metrics, datasets of at most
                this many points get their full distance matrix computed once
            data_type: How ``process`` reads its data when no type is passed

        Raises:
            InvalidConfigurationError: If the medoids are empty, duplicated or
                negative, tolerance/itermax are not positive, or ``data_type`` is
                unknown
        """
        self._initial_medoids = self._validate_medoids(initial_medoids)

        if not isinstance(tolerance, numbers.Real) or isinstance(tolerance, bool):
            raise InvalidConfigurationError(f"tolerance must be a real number, got {tolerance!r}")
        if not tolerance > 0:
            raise InvalidConfigurationError(f"tolerance must be > 0, got {tolerance!r}")
        if not isinstance(itermax, (int, np.integer)) or isinstance(itermax, bool) or itermax < 1:
            raise InvalidConfigurationError(f"itermax must be an integer >= 1, got {itermax!r}")
        if pairwise_cache_limit < 0:
            raise InvalidConfigurationError(
                f"pairwise_cache_limit must be >= 0, got {pairwise_cache_limit!r}"
            )

        self._tolerance = float(tolerance)
        self._itermax = int(itermax)
        self._metric: Metric = metric if metric is not None else distance_metric_factory.euclidean_square()
        self._pairwise_cache_limit = int(pairwise_cache_limit)
        self._data_type = self._resolve_data_type(data_type)
        self._state = KMedoidsState.UNINITIALIZED

        # Outcome of the last successful run
        self._labels = np.zeros(0, dtype=np.int64)
        self._medoids: List[int] = []

        # Per-run state, cleared when process returns
        self._calculator: Optional[DistanceCalculator] = None
        self._assignment: Optional[ClusterAssignment] = None
        self._current_medoids: List[int] = []
        self._medoid_clusters: Dict[int, int] = {}
        self._n_points = 0

    @classmethod
    def from_config(
        cls, initial_medoids: Sequence[int], config: Optional[MedoidkitConfig] = None
    ) -> "KMedoids":
        """
        Create an optimizer from the ``kmedoids`` section of a configuration.

        Args:
            initial_medoids: Dataset indices of the starting medoids
            config: ``MedoidkitConfig``; loaded from the usual sources when None

        Returns:
            Configured optimizer
        """
        if config is None:
            config = load_config()

        defaults = config.kmedoids
        return cls(
            initial_medoids,
            tolerance=defaults.tolerance,
            itermax=defaults.itermax,
            metric=get_metric(defaults.metric, **defaults.metric_params),
            pairwise_cache_limit=defaults.pairwise_cache_limit,
            data_type=defaults.data_type,
        )

    @property
    def initial_medoids(self) -> List[int]:
        return list(self._initial_medoids)

    @property
    def tolerance(self) -> float:
        return self._tolerance

    @property
    def itermax(self) -> int:
        return self._itermax

    @property
    def metric(self) -> Metric:
        return self._metric

    @property
    def data_type(self) -> KMedoidsDataType:
        """Data type used when ``process`` is called without one."""
        return self._data_type

    @property
    def state(self) -> KMedoidsState:
        """Stage of the current (or last) run."""
        return self._state

    def get_labels(self) -> np.ndarray:
        """Cluster index of each point from the last run."""
        return self._labels.copy()

    def get_medoids(self) -> List[int]:
        """Medoid indices from the last run."""
        return list(self._medoids)

    def __repr__(self) -> str:
        return (
            f"KMedoids(initial_medoids={self._initial_medoids}, tolerance={self._tolerance}, "
            f"itermax={self._itermax}, metric={self._metric!r})"
        )

    def process(
        self,
        data: Union[Sequence[Point], np.ndarray],
        data_type: Union[KMedoidsDataType, str, None] = None,
        result: Optional[KMedoidsResult] = None,
    ) -> KMedoidsResult:
        """
        Run the optimizer on a dataset.

        Args:
            data: Points, or an n x n distance matrix
            data_type: How to read ``data``; the optimizer's ``data_type`` when None
            result: Result object to fill in place; a new one when None

        Returns:
            The filled result

        Raises:
            InvalidConfigurationError: If a medoid index is out of range, there
                are more medoids than points, or ``data_type`` is unknown
            DimensionalityError: If points have different lengths or the
                distance matrix is not square
        """
        data_type = self._data_type if data_type is None else self._resolve_data_type(data_type)
        matrix = self._prepare_data(data, data_type)
        n_points = matrix.shape[0]
        self._check_medoids_fit(n_points)

        if result is None:
            result = KMedoidsResult()
        result.clear()

        try:
            self._n_points = n_points
            self._calculator = self._create_distance_calculator(matrix, data_type)
            self._current_medoids = list(self._initial_medoids)
            self._medoid_clusters = {
                index_medoid: index_cluster
                for index_cluster, index_medoid in enumerate(self._current_medoids)
            }
            self._assignment = ClusterAssignment.empty(n_points, len(self._current_medoids))

            self._update_clusters()
            self._state = KMedoidsState.ASSIGNED
            cost_history = [self._assignment.total_deviation]
            logger.debug(
                f"Initial assignment of {n_points} points to {len(self._current_medoids)} "
                f"medoids, total deviation {cost_history[0]:.6g}"
            )

            changes = math.inf
            iterations = 0
            while iterations < self._itermax and changes > self._tolerance:
                self._state = KMedoidsState.SWAPPING
                swapped = self._swap_medoids()
                iterations += 1

                if not swapped:
                    changes = 0.0
                    self._state = KMedoidsState.ASSIGNED
                    logger.debug(f"Iteration {iterations}: no improving swap")
                    break

                changes = self._update_clusters()
                self._state = KMedoidsState.ASSIGNED
                cost_history.append(self._assignment.total_deviation)
                logger.debug(
                    f"Iteration {iterations}: medoids {self._current_medoids}, "
                    f"total deviation {cost_history[-1]:.6g}, change {changes:.6g}"
                )

            self._fill_result(result, iterations, changes, cost_history)
            self._labels = result.labels.copy()
            self._medoids = list(result.medoids)
            self._state = KMedoidsState.CONVERGED

            if result.converged:
                logger.info(
                    f"K-Medoids converged after {iterations} iterations, "
                    f"total deviation {result.total_deviation:.6g}"
                )
            else:
                logger.info(
                    f"K-Medoids stopped at itermax={self._itermax} with change {changes:.6g}"
                )
            return result
        except Exception:
            self._state = KMedoidsState.UNINITIALIZED
            raise
        finally:
            self._calculator = None
            self._assignment = None
            self._medoid_clusters = {}
            self._current_medoids = []
            self._n_points = 0

    # Validation

    @staticmethod
    def _validate_medoids(initial_medoids: Sequence[int]) -> List[int]:
        medoids = list(initial_medoids)
        if not medoids:
            raise InvalidConfigurationError("At least one initial medoid is required")

        for index_medoid in medoids:
            if isinstance(index_medoid, bool) or not isinstance(index_medoid, (int, np.integer)):
                raise InvalidConfigurationError(
                    f"Medoid indices must be integers, got {index_medoid!r}"
                )
            if index_medoid < 0:
                raise InvalidConfigurationError(
                    f"Medoid indices must be non-negative, got {index_medoid}"
                )

        medoids = [int(index_medoid) for index_medoid in medoids]
        if len(set(medoids)) != len(medoids):
            raise InvalidConfigurationError(f"Initial medoids contain duplicates: {medoids}")
        return medoids

    def _check_medoids_fit(self, n_points: int) -> None:
        if len(self._initial_medoids) > n_points:
            raise InvalidConfigurationError(
                f"Number of medoids ({len(self._initial_medoids)}) exceeds "
                f"number of points ({n_points})"
            )
        out_of_range = [m for m in self._initial_medoids if m >= n_points]
        if out_of_range:
            raise InvalidConfigurationError(
                f"Medoid indices {out_of_range} out of range for {n_points} points"
            )

    @staticmethod
    def _resolve_data_type(data_type: Union[KMedoidsDataType, str]) -> KMedoidsDataType:
        if isinstance(data_type, KMedoidsDataType):
            return data_type
        try:
            return KMedoidsDataType(data_type)
        except ValueError:
            raise InvalidConfigurationError(
                f"Unknown data type: {data_type!r}. "
                f"Available types: {[t.value for t in KMedoidsDataType]}"
            ) from None

    @staticmethod
    def _prepare_data(
        data: Union[Sequence[Point], np.ndarray], data_type: KMedoidsDataType
    ) -> np.ndarray:
        if data_type == KMedoidsDataType.POINTS:
            return as_point_matrix(data)

        try:
            matrix = np.asarray(data, dtype=np.float64)
        except ValueError as e:
            raise DimensionalityError(f"Distance matrix rows have different lengths: {e}") from e

        if matrix.size == 0:
            return np.zeros((0, 0), dtype=np.float64)
        if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
            raise DimensionalityError(
                f"Distance matrix must be square, got shape {matrix.shape}"
            )
        return matrix

    # Distances

    def _create_distance_calculator(
        self, matrix: np.ndarray, data_type: KMedoidsDataType
    ) -> DistanceCalculator:
        """Pick how distances are obtained for this run."""
        if data_type == KMedoidsDataType.DISTANCE_MATRIX:
            return lambda index: matrix[:, index]

        n_points = matrix.shape[0]
        metric = self._metric
        if isinstance(metric, DistanceMetric) and n_points <= self._pairwise_cache_limit:
            pairwise = metric.pairwise(matrix)
            logger.debug(f"Precomputed {n_points}x{n_points} distance matrix with {metric!r}")
            return lambda index: pairwise[:, index]

        def calculate(index: int) -> np.ndarray:
            target = matrix[index]
            return np.fromiter(
                (metric(point, target) for point in matrix),
                dtype=np.float64,
                count=n_points,
            )

        return calculate

    # Assignment

    def _update_clusters(self) -> float:
        """
        Assign every point to its nearest medoid.

        A medoid always belongs to its own cluster at distance 0. Ties between
        medoids go to the lower cluster index.

        Returns:
            Largest absolute change of any cluster's summed distance
        """
        assignment = self._assignment
        medoids = self._current_medoids
        n_clusters = len(medoids)
        rows = np.arange(self._n_points)

        # (n_points, n_clusters) distances to every medoid
        to_medoids = np.column_stack([self._calculator(index_medoid) for index_medoid in medoids])

        labels = np.argmin(to_medoids, axis=1).astype(np.int64)
        first = to_medoids[rows, labels]
        if n_clusters > 1:
            others = to_medoids.copy()
            others[rows, labels] = np.inf
            second = np.min(others, axis=1)
        else:
            second = np.full(self._n_points, np.inf)

        for index_cluster, index_medoid in enumerate(medoids):
            labels[index_medoid] = index_cluster
            first[index_medoid] = 0.0
            if n_clusters > 1:
                second[index_medoid] = np.min(np.delete(to_medoids[index_medoid], index_cluster))

        deviations = np.bincount(labels, weights=first, minlength=n_clusters)
        changes = float(np.max(np.abs(deviations - assignment.deviations)))

        assignment.labels = labels
        assignment.distance_first_medoid = first
        assignment.distance_second_medoid = second
        assignment.deviations = deviations
        return changes

    # Swap

    def _calculate_swap_costs(self, index_candidate: int) -> np.ndarray:
        """
        Cost of replacing each medoid by ``index_candidate``.

        Points of the replaced medoid's cluster move to the candidate or to
        their second medoid; other points move to the candidate only if it is
        closer. Negative cost means the total distance would drop.

        Returns:
            Array with one cost per cluster
        """
        assignment = self._assignment
        labels = assignment.labels
        first = assignment.distance_first_medoid
        second = assignment.distance_second_medoid

        to_candidate = self._calculator(index_candidate)
        own_cluster = np.minimum(to_candidate, second) - first
        other_cluster = np.minimum(to_candidate, first) - first

        costs = np.empty(len(self._current_medoids), dtype=np.float64)
        for index_cluster in range(len(self._current_medoids)):
            contribution = np.where(labels == index_cluster, own_cluster, other_cluster)
            contribution[index_candidate] = 0.0
            costs[index_cluster] = np.sum(contribution) - first[index_candidate]
        return costs

    def _swap_medoids(self) -> bool:
        """
        Apply the exchange with the most negative cost, if any.

        Returns:
            True if a medoid was replaced
        """
        n_clusters = len(self._current_medoids)
        costs = np.full((n_clusters, self._n_points), np.inf)
        for index_candidate in range(self._n_points):
            if index_candidate in self._medoid_clusters:
                continue
            costs[:, index_candidate] = self._calculate_swap_costs(index_candidate)

        # argmin takes the first minimum in (cluster, candidate) order
        index_cluster, index_candidate = np.unravel_index(np.argmin(costs), costs.shape)
        best_cost = costs[index_cluster, index_candidate]
        if not best_cost < NOTHING_TO_SWAP:
            return False

        index_cluster = int(index_cluster)
        index_candidate = int(index_candidate)
        replaced = self._current_medoids[index_cluster]
        self._current_medoids[index_cluster] = index_candidate
        del self._medoid_clusters[replaced]
        self._medoid_clusters[index_candidate] = index_cluster
        logger.debug(
            f"Swapped medoid {replaced} -> {index_candidate} in cluster {index_cluster} "
            f"(cost {best_cost:.6g})"
        )
        return True

    def _fill_result(
        self,
        result: KMedoidsResult,
        iterations: int,
        changes: float,
        cost_history: List[float],
    ) -> None:
        assignment = self._assignment
        result.labels = assignment.labels.copy()
        result.medoids = list(self._current_medoids)
        result.clusters = assignment.get_clusters()
        result.distances = assignment.distance_first_medoid.copy()
        result.iterations = iterations
        result.changes = changes
        result.total_deviation = assignment.total_deviation
        result.cost_history = cost_history
        result.converged = changes <= self._tolerance
