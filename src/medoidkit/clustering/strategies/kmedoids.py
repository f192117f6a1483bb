"""K-Medoids clustering strategy implementation."""

import logging
from typing import Dict, Hashable, List, Optional, Sequence, Union

import numpy as np
from scipy.spatial.distance import cdist
from sklearn.metrics import silhouette_score

from ...config import MedoidkitConfig, load_config
from ...container import KDTree
from ...errors import DimensionalityError
from ...utils.metric import DistanceMetric, Point, as_point_matrix, get_metric
from ..kmedoids import DEFAULT_ITERMAX, DEFAULT_PAIRWISE_CACHE_LIMIT, DEFAULT_TOLERANCE, KMedoids
from .base import ClusteringResult, ClusteringStrategy

logger = logging.getLogger(__name__)


class KMedoidsStrategy(ClusteringStrategy):
    """
    K-Medoids (PAM) clustering strategy over keyed vectors.

    Parameters:
        n_clusters: Number of clusters (default: 8, capped at the number of vectors)
        initial_medoids: Keys of the starting medoids (default: seeded random sample)
        random_state: Seed for the random sample (default: 42)
        tolerance: Convergence tolerance (default: 1e-4)
        itermax: Maximum iterations (default: 100)
        metric: Metric name or callable (default: "euclidean_square")
        metric_params: Arguments for a named metric (default: {})
        pairwise_cache_limit: Precompute distances up to this many vectors (default: 4096)
        compute_metrics: Compute the silhouette score (default: True)

    Example:
        >>> strategy = KMedoidsStrategy(n_clusters=2)
        >>> result = strategy.cluster({"a": np.zeros(2), "b": np.ones(2), "c": np.full(2, 9.0)})
        >>> print(f"Found {result.n_clusters} clusters")
        Found 2 clusters
    """

    def __init__(self, **params):
        super().__init__(**params)
        self._medoid_tree: Optional[KDTree[int]] = None
        self._medoid_vectors: Optional[np.ndarray] = None

    @classmethod
    def from_config(cls, config: Optional[MedoidkitConfig] = None, **params) -> "KMedoidsStrategy":
        """
        Create a strategy from the ``strategy`` and ``kmedoids`` config sections.

        Keyword arguments override configured values.
        """
        if config is None:
            config = load_config()

        configured = {
            "n_clusters": config.strategy.n_clusters,
            "random_state": config.strategy.random_state,
            "compute_metrics": config.strategy.compute_metrics,
            "tolerance": config.kmedoids.tolerance,
            "itermax": config.kmedoids.itermax,
            "metric": config.kmedoids.metric,
            "metric_params": dict(config.kmedoids.metric_params),
            "pairwise_cache_limit": config.kmedoids.pairwise_cache_limit,
        }
        configured.update(params)
        return cls(**configured)

    @property
    def name(self) -> str:
        """Strategy name."""
        return "kmedoids"

    def validate_params(self) -> None:
        """Validate strategy parameters."""
        # Set defaults
        self.params.setdefault("n_clusters", 8)
        self.params.setdefault("initial_medoids", None)
        self.params.setdefault("random_state", 42)
        self.params.setdefault("tolerance", DEFAULT_TOLERANCE)
        self.params.setdefault("itermax", DEFAULT_ITERMAX)
        self.params.setdefault("metric", "euclidean_square")
        self.params.setdefault("metric_params", {})
        self.params.setdefault("pairwise_cache_limit", DEFAULT_PAIRWISE_CACHE_LIMIT)
        self.params.setdefault("compute_metrics", True)

        # Validate
        if self.params["n_clusters"] < 1:
            raise ValueError("n_clusters must be >= 1")

        if self.params["itermax"] < 1:
            raise ValueError("itermax must be >= 1")

        if self.params["tolerance"] <= 0:
            raise ValueError("tolerance must be > 0")

        metric = self.params["metric"]
        if isinstance(metric, str):
            self._metric = get_metric(metric, **self.params["metric_params"])
        elif callable(metric):
            self._metric = metric
        else:
            raise ValueError("metric must be a metric name or a callable")

    @property
    def metric(self):
        return self._metric

    def cluster(self, vectors: Dict[Hashable, np.ndarray]) -> ClusteringResult:
        """
        Perform K-Medoids clustering on keyed vectors.

        Args:
            vectors: Dict mapping a key to its vector

        Returns:
            ClusteringResult with clusters, medoid keys, and metrics

        Raises:
            DimensionalityError: If vectors differ in size
            ValueError: If an initial medoid key is not among the vectors
        """
        if len(vectors) == 0:
            return ClusteringResult({}, {}, {}, {"error": "No vectors to cluster"})

        data_matrix, key_list = self._prepare_data(vectors)
        n_samples = len(key_list)

        initial = self._choose_initial_medoids(key_list)
        logger.info(f"Running K-Medoids with {len(initial)} clusters on {n_samples} vectors")

        optimizer = KMedoids(
            initial,
            tolerance=self.params["tolerance"],
            itermax=self.params["itermax"],
            metric=self._metric,
            pairwise_cache_limit=self.params["pairwise_cache_limit"],
        )
        kmedoids_result = optimizer.process(data_matrix)
        labels = kmedoids_result.labels

        clusters = self._labels_to_clusters(labels, key_list)
        medoids = {
            cluster_id: key_list[index_medoid]
            for cluster_id, index_medoid in enumerate(kmedoids_result.medoids)
        }

        metrics: Dict[str, float] = {
            "total_deviation": kmedoids_result.total_deviation,
            "convergence_iterations": kmedoids_result.iterations,
            "n_clusters": kmedoids_result.n_clusters,
        }
        if self.params["compute_metrics"]:
            metrics.update(self._compute_metrics(data_matrix, labels))

        self._medoid_vectors = data_matrix[kmedoids_result.medoids].copy()
        self._medoid_tree = KDTree(
            self._medoid_vectors, payloads=list(range(kmedoids_result.n_clusters))
        )

        metadata = {
            "algorithm": "pam",
            "medoid_indices": list(kmedoids_result.medoids),
            "converged": kmedoids_result.converged,
            "cost_history": list(kmedoids_result.cost_history),
            "params": self.params.copy(),
        }

        return ClusteringResult(
            clusters=clusters,
            medoids=medoids,
            metrics=metrics,
            metadata=metadata,
        )

    def predict(self, points: Union[Sequence[Point], np.ndarray]) -> np.ndarray:
        """
        Assign new points to the nearest medoid of the last clustering.

        Euclidean-family metrics are answered with a KD tree over the medoids;
        other metrics scan every medoid. A point equidistant from several
        medoids gets the lowest cluster id, as in ``KMedoids`` assignment.

        Args:
            points: Points with the dimension of the clustered vectors

        Returns:
            Cluster id per point

        Raises:
            RuntimeError: If ``cluster`` has not been run
            DimensionalityError: If the points have the wrong dimension
        """
        if self._medoid_tree is None or self._medoid_vectors is None:
            raise RuntimeError("Strategy has not been fitted; call cluster() first")

        data_matrix = as_point_matrix(points)
        if data_matrix.shape[0] == 0:
            return np.zeros(0, dtype=np.int64)
        if data_matrix.shape[1] != self._medoid_vectors.shape[1]:
            raise DimensionalityError(
                f"Points have dimension {data_matrix.shape[1]}, "
                f"expected {self._medoid_vectors.shape[1]}"
            )

        if isinstance(self._metric, DistanceMetric) and self._metric.is_euclidean_family:
            return np.array(
                [self._nearest_medoid(point) for point in data_matrix], dtype=np.int64
            )

        labels = np.empty(data_matrix.shape[0], dtype=np.int64)
        for idx, point in enumerate(data_matrix):
            distances = [self._metric(point, medoid) for medoid in self._medoid_vectors]
            labels[idx] = int(np.argmin(distances))
        return labels

    def _nearest_medoid(self, point: np.ndarray) -> int:
        """Cluster id of the nearest medoid; equidistant medoids go to the lowest id."""
        distance, nearest = self._medoid_tree.find_nearest_distance_node(point)
        # One ulp of slack so sqrt rounding keeps the nearest node in range
        candidates = self._medoid_tree.find_nearest_nodes(point, float(np.nextafter(distance, np.inf)))
        tied = [node.payload for node_distance, node in candidates if node_distance == candidates[0][0]]
        return int(min(tied, default=nearest.payload))

    def _choose_initial_medoids(self, key_list: List[Hashable]) -> List[int]:
        """Map configured medoid keys to row indices, or draw a seeded sample."""
        initial_keys = self.params["initial_medoids"]
        if initial_keys is not None:
            positions = {key: idx for idx, key in enumerate(key_list)}
            missing = [key for key in initial_keys if key not in positions]
            if missing:
                raise ValueError(f"Initial medoid keys not found: {missing}")
            return [positions[key] for key in initial_keys]

        n_samples = len(key_list)
        n_clusters = min(self.params["n_clusters"], n_samples)
        if n_clusters < self.params["n_clusters"]:
            logger.warning(
                f"Requested {self.params['n_clusters']} clusters but only "
                f"{n_samples} vectors; using {n_clusters}"
            )

        rng = np.random.default_rng(self.params["random_state"])
        return sorted(int(idx) for idx in rng.choice(n_samples, n_clusters, replace=False))

    def _compute_metrics(self, data_matrix: np.ndarray, labels: np.ndarray) -> Dict[str, float]:
        """Compute clustering quality metrics under the clustering metric."""
        metrics: Dict[str, float] = {}

        n_samples = data_matrix.shape[0]
        n_clusters = len(np.unique(labels))
        if not 1 < n_clusters < n_samples:
            return metrics

        if isinstance(self._metric, DistanceMetric):
            distances = self._metric.pairwise(data_matrix)
        else:
            distances = cdist(data_matrix, data_matrix, metric=self._metric)

        try:
            metrics["silhouette_score"] = float(
                silhouette_score(distances, labels, metric="precomputed")
            )
        except ValueError as e:
            logger.warning(f"Failed to compute clustering metrics: {e}")

        return metrics
